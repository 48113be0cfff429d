import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from challenge_tracker.api.deps import get_runtime
from challenge_tracker.core.exceptions import MetaCopierApiError
from challenge_tracker.schemas.accounts import AccountListResponse, AccountResponse, TradeListResponse, TradeResponse
from challenge_tracker.services.challenge_service import unlinked_accounts
from challenge_tracker.services.prop_firms import guess_prop_firm
from challenge_tracker.services.providers.base_provider import AccountInfo
from challenge_tracker.services.runtime import TrackerRuntime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/accounts", tags=["accounts"])


def _account_response(a: AccountInfo) -> AccountResponse:
    return AccountResponse(
        id=a.account_id,
        name=a.account_name,
        login=a.login,
        server=a.server,
        platform=a.platform,
        balance=a.balance,
        equity=a.equity,
        margin=a.margin,
        free_margin=a.free_margin,
        connected=a.connected,
        trades_count=a.trades_count,
        unrealized_pnl=a.unrealized_pnl,
        is_master=a.is_master,
        guessed_prop_firm=guess_prop_firm(a.server),
    )


@router.get("", response_model=AccountListResponse)
async def list_accounts(runtime: TrackerRuntime = Depends(get_runtime)):
    state = runtime.state
    return AccountListResponse(
        accounts=[_account_response(a) for a in state.accounts.values()],
        total=len(state.accounts),
        last_refresh_at=state.last_refresh_at,
        last_refresh_error=state.last_refresh_error,
    )


@router.get("/unlinked", response_model=AccountListResponse)
async def list_unlinked_accounts(runtime: TrackerRuntime = Depends(get_runtime)):
    """Account MetaCopier non ancora collegati a una challenge."""
    accounts = unlinked_accounts(runtime.state)
    return AccountListResponse(
        accounts=[_account_response(a) for a in accounts],
        total=len(accounts),
        last_refresh_at=runtime.state.last_refresh_at,
    )


@router.get("/{account_id}/trades", response_model=TradeListResponse)
async def get_account_trades(
    account_id: str,
    from_date: datetime | None = Query(default=None),
    to_date: datetime | None = Query(default=None),
    runtime: TrackerRuntime = Depends(get_runtime),
):
    try:
        trades = await runtime.provider.fetch_account_trades(account_id, from_date, to_date)
    except MetaCopierApiError as e:
        logger.error(f"Failed to fetch trades for {account_id}: {e}")
        raise HTTPException(status_code=502, detail=f"Errore MetaCopier: {e.status_code}")
    return TradeListResponse(
        trades=[
            TradeResponse(
                id=t.external_trade_id,
                symbol=t.symbol,
                side=t.side,
                volume=t.volume,
                open_price=t.open_price,
                close_price=t.close_price,
                profit=t.pnl,
                swap=t.swap,
                commission=t.commission,
                open_time=t.open_time,
                close_time=t.close_time,
                is_open=t.is_open,
            )
            for t in trades
        ],
        total=len(trades),
    )
