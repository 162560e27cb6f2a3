"""
Treasury Schema

Process-wide pool of collected premiums and deposited capital.
"""

from pydantic import BaseModel, Field


class TreasuryState(BaseModel):
    """
    Aggregate treasury bookkeeping.

    balance rises on premiums and deposits, falls on payouts, refunds
    and emergency withdrawals. The totals only ever grow.
    """
    balance: int = Field(default=0, ge=0)
    total_premiums_collected: int = Field(default=0, ge=0)
    total_claims_paid: int = Field(default=0, ge=0)
    total_refunds_paid: int = Field(default=0, ge=0)
    total_withdrawn: int = Field(default=0, ge=0)
    total_capital_deposited: int = Field(default=0, ge=0)
