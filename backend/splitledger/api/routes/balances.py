"""
Balance routes.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import sessionmaker
from typing import Optional
from splitledger.db.session import get_session_factory
from splitledger.models.user import User
from splitledger.schemas.balance import BalancesResponse
from splitledger.api.dependencies import get_current_user
from splitledger.services.balance_service import LedgerContext, compute_overall_balances
from splitledger.services.identity_service import enrich_report

router = APIRouter(prefix="/balances", tags=["balances"])


@router.get("", response_model=BalancesResponse, response_model_exclude_none=True)
def get_balances(
    group_id: Optional[str] = Query(None, description="Restrict the report to one group"),
    current_user: User = Depends(get_current_user),
    session_factory: sessionmaker = Depends(get_session_factory)
):
    """
    Get the current user's balances.
    Without group_id covers every active group; with it, only that group.
    """
    context = LedgerContext(
        viewer_id=current_user.id,
        viewer_email=current_user.email,
        session_factory=session_factory
    )
    report = compute_overall_balances(context, group_id)
    enrich_report(report, context)
    return BalancesResponse.from_report(report)
