"""
Cross-group balance aggregation.

Runs the netting engine for every group the viewer belongs to, isolates
failures per group, and folds the results into the viewer's own overall
position per currency.
"""
from concurrent.futures import ThreadPoolExecutor
from sqlalchemy.orm import sessionmaker
from typing import Dict, List, Optional, Tuple
from decimal import Decimal
import logging
from splitledger.core.config import settings
from splitledger.core.currency import round_to_minor_unit, is_settled
from splitledger.core.errors import ValidationError, PermissionDeniedError
from splitledger.core.utils import is_valid_uuid
from splitledger.services import ledger_store
from splitledger.services.netting_service import Balance, compute_group_balances

logger = logging.getLogger(__name__)

UNKNOWN_GROUP_NAME = "Unknown Group"


class LedgerContext:
    """
    Request-scoped state for one balance computation.
    Created per request and never shared, so concurrent requests cannot
    observe each other's lookups.
    """

    def __init__(
        self,
        viewer_id: str,
        session_factory: sessionmaker,
        viewer_email: Optional[str] = None,
        max_workers: Optional[int] = None
    ):
        self.viewer_id = viewer_id
        self.viewer_email = viewer_email
        self.session_factory = session_factory
        self.max_workers = max_workers or settings.BALANCE_MAX_WORKERS


class GroupBalance:
    """Balances of every participant in one group."""

    def __init__(self, group_id: str, group_name: str, balances: List[Balance]):
        self.group_id = group_id
        self.group_name = group_name
        self.balances = balances


class OverallBalance:
    """The viewer's net position in one currency across groups."""

    def __init__(self, user_id: str, currency: str, amount: Decimal):
        self.user_id = user_id
        self.currency = currency
        self.amount = amount
        self.identity = None


class BalanceReport:
    """Per-group and overall balances returned to the viewer."""

    def __init__(self, group_balances: List[GroupBalance] = None, overall_balances: List[OverallBalance] = None):
        self.group_balances = group_balances or []
        self.overall_balances = overall_balances or []


class GroupOutcome:
    """Result of one group's computation: balances, or the error it raised."""

    def __init__(self, group_id: str, balances: List[Balance] = None, error: Exception = None):
        self.group_id = group_id
        self.balances = balances or []
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None


def resolve_target_groups(
    memberships: List[Tuple[str, str]],
    group_id: Optional[str] = None
) -> List[Tuple[str, str]]:
    """
    Pick the groups to compute from the viewer's memberships.

    Raises:
        ValidationError: group_id is not a UUID
        PermissionDeniedError: viewer is not an active member of group_id
    """
    if group_id is None:
        return memberships
    if not is_valid_uuid(group_id):
        raise ValidationError("Invalid group_id format. Expected UUID.")
    targets = [(gid, name) for gid, name in memberships if gid.lower() == group_id.lower()]
    if not targets:
        raise PermissionDeniedError("Access denied to this group")
    return targets


def _compute_group(context: LedgerContext, group_id: str) -> GroupOutcome:
    db = context.session_factory()
    try:
        return GroupOutcome(group_id, balances=compute_group_balances(group_id, db))
    except Exception as e:
        logger.error(f"Balance computation failed for group {group_id}: {e}", exc_info=True)
        return GroupOutcome(group_id, error=e)
    finally:
        db.close()


def compute_group_outcomes(context: LedgerContext, group_ids: List[str]) -> Dict[str, GroupOutcome]:
    """
    Compute every group independently on a bounded thread pool.
    Each task captures its own failure; none can fail the others.
    """
    if not group_ids:
        return {}
    workers = max(1, min(context.max_workers, len(group_ids)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="balances") as executor:
        futures = {gid: executor.submit(_compute_group, context, gid) for gid in group_ids}
        return {gid: future.result() for gid, future in futures.items()}


def merge_overall(viewer_id: str, group_balances: List[GroupBalance]) -> List[OverallBalance]:
    """
    Sum participant balances across groups by (user_id, currency) and keep
    only the viewer's own entries.
    """
    totals: Dict[Tuple[str, str], Decimal] = {}
    for group in group_balances:
        for balance in group.balances:
            if not balance.user_id:
                continue
            key = (balance.user_id, balance.currency)
            totals[key] = totals.get(key, Decimal(0)) + balance.amount

    overall = []
    for (user_id, currency), total in sorted(totals.items(), key=lambda item: item[0][1]):
        if user_id != viewer_id:
            continue
        rounded = round_to_minor_unit(total, currency)
        if is_settled(rounded):
            continue
        overall.append(OverallBalance(user_id, currency, rounded))
    return overall


def compute_overall_balances(context: LedgerContext, group_id: Optional[str] = None) -> BalanceReport:
    """
    Compute the viewer's per-group and overall balances.

    Args:
        context: Request-scoped viewer and store access
        group_id: Optional group to restrict the report to

    Returns:
        BalanceReport; groups that failed to compute carry empty balances

    Raises:
        ValidationError, PermissionDeniedError: rejected before computation
        StoreAccessError: the viewer's membership query failed
    """
    if group_id is not None and not is_valid_uuid(group_id):
        raise ValidationError("Invalid group_id format. Expected UUID.")

    db = context.session_factory()
    try:
        memberships = ledger_store.fetch_memberships(db, context.viewer_id)
    finally:
        db.close()

    targets = resolve_target_groups(memberships, group_id)
    if not targets:
        return BalanceReport()

    outcomes = compute_group_outcomes(context, [gid for gid, _ in targets])

    group_balances = []
    for gid, name in targets:
        outcome = outcomes[gid]
        if not outcome.ok:
            logger.warning(f"Returning empty balances for group {gid} after failure: {outcome.error}")
        group_balances.append(GroupBalance(gid, name or UNKNOWN_GROUP_NAME, outcome.balances))

    overall = merge_overall(context.viewer_id, group_balances)
    logger.info(
        f"Computed balances for viewer {context.viewer_id}: {len(group_balances)} groups, "
        f"{sum(1 for o in outcomes.values() if not o.ok)} failed, {len(overall)} overall entries"
    )
    return BalanceReport(group_balances, overall)
