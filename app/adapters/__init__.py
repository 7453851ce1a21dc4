"""Platform adapters for chat integrations."""

from app.adapters.base import BasePlatformAdapter
from app.adapters.lark import LarkAdapter

__all__ = ["BasePlatformAdapter", "LarkAdapter"]
