"""
Per-group netting: turns a group's expenses and settlements into signed
balances per participant and currency.
"""
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional, Tuple
from decimal import Decimal, InvalidOperation
import logging
from splitledger.core.currency import is_settled, minor_unit, round_to_minor_unit
from splitledger.core.errors import DataIntegrityAnomaly
from splitledger.models.transaction import Transaction
from splitledger.models.settlement import Settlement
from splitledger.services import ledger_store
from splitledger.services.participant_resolver import (
    ParticipantDirectory, ParticipantRef, resolve_participants
)

logger = logging.getLogger(__name__)


class Balance:
    """Net position of one participant in one currency (positive = is owed)."""

    def __init__(self, participant: ParticipantRef, currency: str, amount: Decimal):
        self.participant = participant
        self.currency = currency
        self.amount = amount
        self.identity = None  # Display data, set by identity enrichment

    @property
    def participant_id(self) -> str:
        return self.participant.participant_id

    @property
    def user_id(self) -> Optional[str]:
        return self.participant.user_id

    def __repr__(self):
        return f"Balance({self.participant_id!r}, {self.currency!r}, {self.amount})"


class LedgerExpense:
    """An expense with every party already resolved."""

    def __init__(self, payer: ParticipantRef, amount: Decimal, currency: str, shares: List[Tuple[ParticipantRef, Decimal]]):
        self.payer = payer
        self.amount = amount
        self.currency = currency
        self.shares = shares


class LedgerSettlement:
    """A direct payment with both endpoints resolved."""

    def __init__(self, sender: ParticipantRef, receiver: ParticipantRef, amount: Decimal, currency: str):
        self.sender = sender
        self.receiver = receiver
        self.amount = amount
        self.currency = currency


def parse_amount(value, record_id: str = None, allow_zero: bool = False) -> Decimal:
    """
    Parse a stored amount into a finite Decimal.
    Raises DataIntegrityAnomaly for unparsable, infinite, NaN, negative
    (or zero, unless allow_zero) values.
    """
    if value is None or isinstance(value, bool):
        raise DataIntegrityAnomaly("missing amount", record_id)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise DataIntegrityAnomaly(f"unparsable amount {value!r}", record_id)
    if not amount.is_finite():
        raise DataIntegrityAnomaly(f"non-finite amount {value!r}", record_id)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise DataIntegrityAnomaly(f"out-of-range amount {value!r}", record_id)
    return amount


def _parse_currency(value, record_id: str) -> str:
    """Return the stored currency code unchanged; anything but 3 letters is an anomaly."""
    if not value:
        raise DataIntegrityAnomaly("missing currency", record_id)
    if len(value) != 3 or not value.isalpha():
        raise DataIntegrityAnomaly(f"malformed currency {value!r}", record_id)
    return value


def load_expense(transaction: Transaction, directory: ParticipantDirectory) -> LedgerExpense:
    """Resolve and validate one stored transaction."""
    payer = directory.resolve(transaction.paid_by_participant_id, transaction.paid_by)
    if payer is None:
        raise DataIntegrityAnomaly("payer cannot be resolved", transaction.id)
    amount = parse_amount(transaction.amount, transaction.id)
    currency = _parse_currency(transaction.currency, transaction.id)

    if not transaction.splits:
        raise DataIntegrityAnomaly("transaction has no splits", transaction.id)

    shares = []
    for split in transaction.splits:
        participant = directory.resolve(split.participant_id, split.user_id)
        if participant is None:
            raise DataIntegrityAnomaly(f"split {split.id} participant cannot be resolved", transaction.id)
        shares.append((participant, parse_amount(split.amount, transaction.id, allow_zero=True)))

    split_total = sum((share for _, share in shares), Decimal(0))
    if split_total != amount:
        logger.warning(
            f"Transaction {transaction.id}: splits total {split_total} but amount is {amount} {currency}"
        )
    return LedgerExpense(payer, amount, currency, shares)


def load_settlement(settlement: Settlement, directory: ParticipantDirectory) -> LedgerSettlement:
    """Resolve and validate one stored settlement."""
    sender = directory.resolve(settlement.from_participant_id, settlement.from_user_id)
    receiver = directory.resolve(settlement.to_participant_id, settlement.to_user_id)
    if sender is None or receiver is None:
        raise DataIntegrityAnomaly("settlement endpoint cannot be resolved", settlement.id)
    if sender == receiver:
        raise DataIntegrityAnomaly("settlement sender and receiver are the same participant", settlement.id)
    currency = _parse_currency(settlement.currency, settlement.id)
    amount = parse_amount(settlement.amount, settlement.id)
    return LedgerSettlement(sender, receiver, amount, currency)


def _load_records(rows: Iterable, loader, directory: ParticipantDirectory, kind: str) -> list:
    records = []
    for row in rows:
        try:
            records.append(loader(row, directory))
        except DataIntegrityAnomaly as anomaly:
            logger.warning(
                f"Skipping {kind} {anomaly.record_id} in group {directory.group_id}: {anomaly}"
            )
    return records


def net_ledger(expenses: Iterable[LedgerExpense], settlements: Iterable[LedgerSettlement]) -> List[Balance]:
    """
    Net resolved records into rounded, non-zero balances.

    Every credit is matched by debits of the same total, so per currency the
    unrounded balances sum to exactly zero; rounding keeps that sum.
    """
    totals: Dict[Tuple[str, str], Decimal] = {}
    parties: Dict[str, ParticipantRef] = {}

    def post(party: ParticipantRef, currency: str, amount: Decimal):
        key = (party.participant_id, currency)
        parties[party.participant_id] = party
        totals[key] = totals.get(key, Decimal(0)) + amount

    for expense in expenses:
        post(expense.payer, expense.currency, expense.amount)
        for participant, share in expense.shares:
            post(participant, expense.currency, -share)

    for settlement in settlements:
        # Paying reduces the sender's debt and what the receiver is owed.
        post(settlement.sender, settlement.currency, settlement.amount)
        post(settlement.receiver, settlement.currency, -settlement.amount)

    by_currency: Dict[str, Dict[str, Decimal]] = {}
    for (participant_id, currency), total in totals.items():
        by_currency.setdefault(currency, {})[participant_id] = total

    balances = []
    for currency in sorted(by_currency):
        rounded = _round_conserving(by_currency[currency], currency)
        for participant_id in sorted(rounded):
            if is_settled(rounded[participant_id]):
                continue
            balances.append(Balance(parties[participant_id], currency, rounded[participant_id]))
    return balances


def _round_conserving(totals: Dict[str, Decimal], currency: str) -> Dict[str, Decimal]:
    """
    Round one currency's totals to its minor unit without losing conservation.

    Rounding each total on its own can leave the rounded column off by a few
    minor units (JPY 333.33 three times rounds to 999, not 1000). The residual
    is handed back one unit at a time to the rows whose rounding moved them
    furthest the other way, ties broken by participant id.
    """
    rounded = {pid: round_to_minor_unit(total, currency) for pid, total in totals.items()}
    target = round_to_minor_unit(sum(totals.values(), Decimal(0)), currency)
    residual = target - sum(rounded.values(), Decimal(0))
    if not residual:
        return rounded

    unit = minor_unit(currency)
    step = unit if residual > 0 else -unit
    if step > 0:
        drift = {pid: rounded[pid] - totals[pid] for pid in rounded}
    else:
        drift = {pid: totals[pid] - rounded[pid] for pid in rounded}
    count = int(abs(residual) / unit)
    for pid in sorted(rounded, key=lambda p: (drift[p], p))[:count]:
        rounded[pid] += step
    return rounded


def compute_group_balances(group_id: str, db: Session) -> List[Balance]:
    """
    Compute every participant's balance in one group.

    Store failures propagate as StoreAccessError. Records that cannot be
    applied are logged and skipped.
    """
    directory = resolve_participants(group_id, db)
    transactions = ledger_store.fetch_expense_transactions(db, group_id)
    settlements = ledger_store.fetch_settlements(db, group_id)

    expenses = _load_records(transactions, load_expense, directory, "transaction")
    payments = _load_records(settlements, load_settlement, directory, "settlement")

    balances = net_ledger(expenses, payments)
    logger.debug(
        f"Group {group_id}: {len(expenses)}/{len(transactions)} transactions, "
        f"{len(payments)}/{len(settlements)} settlements, {len(balances)} open balances"
    )
    return balances
