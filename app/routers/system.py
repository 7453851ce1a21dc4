from fastapi import APIRouter, Depends, HTTPException

from app.core.app_state import AppState
from app.routers.utils.dependencies import get_app_state

router = APIRouter(
    prefix="/health",
    tags=["system"],
)


@router.get("/live")
def health_live() -> dict:
    # always 200 once running
    return {"status": "ok"}


@router.get("/ready")
def health_ready(state: AppState = Depends(get_app_state)) -> dict:
    """Ready when the store answers."""
    if not state.store.ping():
        raise HTTPException(status_code=503, detail="Database unreachable")
    return {
        "status": "ok",
        "lark_configured": state.settings.lark_configured,
        "completion_configured": getattr(
            state.completion_client, "configured", True
        ),
    }
