"""Session key derivation from chat and sender identifiers."""

from __future__ import annotations

from urllib.parse import quote

SESSION_KEY_SEPARATOR = ":"


def build_session_key(chat_id: str, sender_id: str) -> str:
    """
    Build a deterministic session key for a (chat, sender) pair.

    Each part is percent-encoded with no safe characters, so neither can
    contain the separator and distinct pairs never map to the same key.
    Typical Lark ids (oc_..., ou_...) pass through unchanged: "oc_1:ou_2".
    """
    return SESSION_KEY_SEPARATOR.join(
        (quote(chat_id, safe=""), quote(sender_id, safe=""))
    )
