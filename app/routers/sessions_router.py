"""Maintenance API: conversation history, deletion, and event inspection."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi_pagination import Page, Params, paginate

from app.routers.utils.dependencies import get_message_store, require_admin_token
from app.schemas.relay import EventRead, TurnRead
from app.services.message_store import MessageStore

sessions_router = APIRouter(
    prefix="/sessions",
    tags=["Session"],
    dependencies=[Depends(require_admin_token)],
)
turns_router = APIRouter(
    prefix="/turns",
    tags=["Session"],
    dependencies=[Depends(require_admin_token)],
)
events_router = APIRouter(
    prefix="/events",
    tags=["Event"],
    dependencies=[Depends(require_admin_token)],
)


@sessions_router.get("/{session_id}/turns", response_model=Page[TurnRead])
def list_session_turns(
    session_id: str,
    params: Params = Depends(),
    store: MessageStore = Depends(get_message_store),
) -> Page[TurnRead]:
    """List turns for a session, newest first."""
    return paginate(store.list_turns(session_id), params=params)


@sessions_router.delete("/{session_id}", status_code=204)
def delete_session(
    session_id: str,
    store: MessageStore = Depends(get_message_store),
) -> Response:
    """Delete every turn of a session. Deleting an empty session is a no-op."""
    store.delete_session(session_id)
    return Response(status_code=204)


@turns_router.delete("/{turn_id}", status_code=204)
def delete_turn(
    turn_id: int,
    store: MessageStore = Depends(get_message_store),
) -> Response:
    """Delete one turn. Deleting an unknown turn is a no-op."""
    store.delete_turn(turn_id)
    return Response(status_code=204)


@events_router.get("/{event_id}", response_model=EventRead)
def get_event(
    event_id: str,
    store: MessageStore = Depends(get_message_store),
) -> EventRead:
    """Return a recorded event with its processing trace."""
    event = store.get_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event
