from fastapi import APIRouter, Depends

from challenge_tracker.api.deps import get_runtime
from challenge_tracker.services.runtime import TrackerRuntime

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(runtime: TrackerRuntime = Depends(get_runtime)):
    state = runtime.state
    return {
        "status": "ok",
        "accounts": len(state.accounts),
        "challenges": len(state.challenges),
        "polling": runtime.account_timer.running and runtime.notification_timer.running,
        "last_refresh_at": state.last_refresh_at.isoformat() if state.last_refresh_at else None,
        "last_refresh_error": state.last_refresh_error,
        "last_poll_at": state.last_poll_at.isoformat() if state.last_poll_at else None,
    }
