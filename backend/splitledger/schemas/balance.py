"""
Pydantic schemas for balance responses.
"""
from pydantic import BaseModel
from typing import List, Optional
from splitledger.services.balance_service import BalanceReport


class BalanceEntry(BaseModel):
    """One participant's balance in one currency within a group."""
    user_id: Optional[str] = None  # Absent for invited participants without an account
    participant_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    amount: float  # Positive = is owed money, negative = owes money
    currency: str


class GroupBalanceResponse(BaseModel):
    """Balances of all participants in one group."""
    group_id: str
    group_name: str
    balances: List[BalanceEntry] = []


class OverallBalanceEntry(BaseModel):
    """The viewer's net position in one currency across all groups."""
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    amount: float
    currency: str


class BalancesResponse(BaseModel):
    """Schema for the balances endpoint."""
    group_balances: List[GroupBalanceResponse] = []
    overall_balances: List[OverallBalanceEntry] = []

    @classmethod
    def from_report(cls, report: BalanceReport) -> "BalancesResponse":
        """Build the response envelope from a computed report."""
        def display(balance):
            identity = balance.identity
            if identity is None:
                return {}
            return {
                "email": identity.email,
                "full_name": identity.full_name,
                "avatar_url": identity.avatar_url
            }

        return cls(
            group_balances=[
                GroupBalanceResponse(
                    group_id=group.group_id,
                    group_name=group.group_name,
                    balances=[
                        BalanceEntry(
                            user_id=b.user_id,
                            participant_id=b.participant_id,
                            amount=float(b.amount),
                            currency=b.currency,
                            **display(b)
                        )
                        for b in group.balances
                    ]
                )
                for group in report.group_balances
            ],
            overall_balances=[
                OverallBalanceEntry(
                    user_id=b.user_id,
                    amount=float(b.amount),
                    currency=b.currency,
                    **display(b)
                )
                for b in report.overall_balances
            ]
        )
