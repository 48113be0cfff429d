import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from challenge_tracker.api.deps import get_runtime
from challenge_tracker.db.session import get_db
from challenge_tracker.models.challenge import Challenge
from challenge_tracker.schemas.challenges import (
    ChallengeCreate,
    ChallengeListResponse,
    ChallengeResponse,
    ChallengeUpdate,
    SnapshotCaptureResponse,
)
from challenge_tracker.services import challenge_service
from challenge_tracker.services.metrics_service import build_challenge_rows
from challenge_tracker.services.runtime import TrackerRuntime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/challenges", tags=["challenges"])


def _challenge_response(c: Challenge) -> ChallengeResponse:
    return ChallengeResponse(
        id=c.id,
        metacopier_account_id=c.metacopier_account_id,
        alias=c.alias,
        prop_firm=c.prop_firm,
        phase=c.phase,
        platform=c.platform,
        target_pct=float(c.target_pct or 0),
        owner=c.owner,
        login_number=c.login_number,
        login_server=c.login_server,
        cost=float(c.cost or 0),
        daily_dd_pct=float(c.daily_dd_pct) if c.daily_dd_pct is not None else None,
        max_dd_pct=float(c.max_dd_pct) if c.max_dd_pct is not None else None,
        is_master=c.is_master,
        started_at=c.started_at,
        created_at=c.created_at,
    )


@router.get("", response_model=ChallengeListResponse)
async def list_challenge_rows(runtime: TrackerRuntime = Depends(get_runtime)):
    rows = build_challenge_rows(runtime.state)
    return ChallengeListResponse(
        challenges=rows,
        total=len(rows),
        last_refresh_at=runtime.state.last_refresh_at,
    )


@router.post("", response_model=ChallengeResponse, status_code=status.HTTP_201_CREATED)
async def create_challenge(
    body: ChallengeCreate,
    runtime: TrackerRuntime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    challenge = await challenge_service.create_challenge(db, body)
    runtime.state.add_challenge(challenge)
    logger.info(
        "Challenge created: id=%s account=%s firm=%s phase=%s",
        challenge.id, challenge.metacopier_account_id, challenge.prop_firm, challenge.phase,
    )
    return _challenge_response(challenge)


@router.patch("/{challenge_id}", response_model=ChallengeResponse)
async def update_challenge(
    challenge_id: uuid.UUID,
    body: ChallengeUpdate,
    runtime: TrackerRuntime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    challenge = await challenge_service.get_challenge(db, challenge_id)
    challenge = await challenge_service.update_challenge(db, challenge, body)
    runtime.state.replace_challenge(challenge)
    return _challenge_response(challenge)


@router.delete("/{challenge_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_challenge(
    challenge_id: uuid.UUID,
    runtime: TrackerRuntime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    await challenge_service.delete_challenge(db, challenge_id)
    runtime.state.remove_challenge(challenge_id)
    logger.info(f"Challenge deleted: {challenge_id}")


@router.post("/snapshots", response_model=SnapshotCaptureResponse)
async def capture_snapshots(
    runtime: TrackerRuntime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    """Salva uno snapshot di balance/equity per ogni challenge connessa."""
    rows = build_challenge_rows(runtime.state)
    saved = await challenge_service.capture_snapshots(db, rows)
    return SnapshotCaptureResponse(message="Snapshot salvati", snapshots_saved=saved)


@router.post("/refresh", response_model=ChallengeListResponse)
async def refresh_challenges(runtime: TrackerRuntime = Depends(get_runtime)):
    """Forza il refresh di account e challenge senza attendere il timer."""
    await runtime.refresh_service.refresh()
    rows = build_challenge_rows(runtime.state)
    return ChallengeListResponse(
        challenges=rows,
        total=len(rows),
        last_refresh_at=runtime.state.last_refresh_at,
    )
