"""Pydantic schemas for st_admin API."""

from pydantic import BaseModel, Field


class WalletActivationRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class LedgerVerificationResponse(BaseModel):
    ok: bool
    wallets_checked: int
    violations: list[str]


class WalletActivationResponse(BaseModel):
    owner_id: str
    is_active: bool
    balance_cents: int


class DispatchResponse(BaseModel):
    claimed: int
    sent: int
    failed: int
