from fastapi import APIRouter, Depends, Query

from challenge_tracker.api.deps import get_runtime
from challenge_tracker.schemas.notifications import (
    IncludeMasterRequest,
    IncludeMasterResponse,
    NotificationListResponse,
    NotificationResponse,
    PollResponse,
    PushPermissionResponse,
)
from challenge_tracker.services.runtime import TrackerRuntime

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    limit: int = Query(default=50, ge=1, le=200),
    runtime: TrackerRuntime = Depends(get_runtime),
):
    state = runtime.state
    return NotificationListResponse(
        notifications=[
            NotificationResponse(
                id=n.id,
                challenge_id=n.challenge_id,
                account_alias=n.account_alias,
                symbol=n.symbol,
                side=n.side,
                volume=n.volume,
                profit=n.profit,
                open_price=n.open_price,
                close_price=n.close_price,
                open_time=n.open_time,
                close_time=n.close_time,
                is_open=n.is_open,
                is_master=n.is_master,
                timestamp=n.timestamp,
            )
            for n in state.notifications[:limit]
        ],
        total=len(state.notifications),
        unread_count=runtime.notification_service.unread_count(),
        include_master=state.include_master,
        last_poll_at=state.last_poll_at,
    )


@router.post("/poll", response_model=PollResponse)
async def poll_now(runtime: TrackerRuntime = Depends(get_runtime)):
    new = await runtime.notification_service.poll_for_new_trades()
    return PollResponse(new_notifications=new, total=len(runtime.state.notifications))


@router.put("/include-master", response_model=IncludeMasterResponse)
async def set_include_master(
    body: IncludeMasterRequest,
    runtime: TrackerRuntime = Depends(get_runtime),
):
    affected = await runtime.notification_service.set_include_master(body.enabled)
    return IncludeMasterResponse(include_master=runtime.state.include_master, affected=affected)


@router.post("/push-permission", response_model=PushPermissionResponse)
async def request_push_permission(runtime: TrackerRuntime = Depends(get_runtime)):
    await runtime.push.request_permission()
    return PushPermissionResponse(supported=runtime.push.supported, permission=runtime.push.permission)


@router.delete("/push-permission", response_model=PushPermissionResponse)
async def revoke_push_permission(runtime: TrackerRuntime = Depends(get_runtime)):
    runtime.push.revoke_permission()
    return PushPermissionResponse(supported=runtime.push.supported, permission=runtime.push.permission)
