"""Payment processor adapters.

HttpPaymentProcessor talks to a processor REST API with a bounded timeout.
Failures are mapped to ExternalProcessorError:
  timeout / connection error / 5xx / 429  → retryable
  other 4xx                                → not retryable (rejected)

SandboxPaymentProcessor is used when no processor URL is configured. Accounts
are always ready and payout ids derive from the idempotency key, so repeated
submissions return the same payout just like a real processor would.
"""

import hashlib
import logging
import uuid
from typing import Any

import httpx

from config.settings import settings
from src.st_common.errors import ExternalProcessorError
from src.st_common.identity import WalletOwnerId
from src.st_payout.domain.models import ProcessorAccountStatus, ProcessorPayout

logger = logging.getLogger(__name__)


class HttpPaymentProcessor:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout if timeout is not None else settings.PROCESSOR_TIMEOUT_SECONDS
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            try:
                resp = await client.request(method, path, json=json, headers=headers)
            except httpx.TimeoutException as e:
                raise ExternalProcessorError(f"timeout on {method} {path}") from e
            except httpx.TransportError as e:
                raise ExternalProcessorError(f"{type(e).__name__} on {method} {path}") from e

        if resp.status_code >= 500 or resp.status_code == 429:
            raise ExternalProcessorError(f"{method} {path} returned {resp.status_code}")
        if resp.status_code >= 400:
            raise ExternalProcessorError(
                f"{method} {path} rejected with {resp.status_code}: {resp.text[:200]}",
                retryable=False,
            )
        return resp.json()

    async def create_account(self, owner_id: WalletOwnerId, identity: dict[str, Any]) -> str:
        data = await self._request(
            "POST",
            "/accounts",
            {"owner_id": owner_id, **identity},
            idempotency_key=f"account:{owner_id}",
        )
        return str(data["id"])

    async def get_account_status(self, account_id: str) -> ProcessorAccountStatus:
        data = await self._request("GET", f"/accounts/{account_id}")
        return ProcessorAccountStatus(
            account_id=account_id,
            ready=bool(data.get("payouts_enabled", False)),
            requirements=[str(r) for r in data.get("requirements", [])],
        )

    async def is_ready_for_payouts(self, account_id: str) -> bool:
        return (await self.get_account_status(account_id)).ready

    async def create_payout(
        self,
        account_id: str,
        amount: int,
        currency: str,
        description: str,
        idempotency_key: str,
    ) -> ProcessorPayout:
        data = await self._request(
            "POST",
            "/payouts",
            {
                "account_id": account_id,
                "amount": amount,
                "currency": currency.lower(),
                "description": description,
            },
            idempotency_key=idempotency_key,
        )
        return ProcessorPayout(id=str(data["id"]), status=str(data.get("status", "pending")))


class SandboxPaymentProcessor:
    async def create_account(self, owner_id: WalletOwnerId, identity: dict[str, Any]) -> str:
        return f"acct_{uuid.uuid4().hex[:16]}"

    async def get_account_status(self, account_id: str) -> ProcessorAccountStatus:
        return ProcessorAccountStatus(account_id=account_id, ready=True)

    async def is_ready_for_payouts(self, account_id: str) -> bool:
        return True

    async def create_payout(
        self,
        account_id: str,
        amount: int,
        currency: str,
        description: str,
        idempotency_key: str,
    ) -> ProcessorPayout:
        digest = hashlib.sha256(idempotency_key.encode()).hexdigest()[:16]
        logger.info("sandbox payout %s: %d %s to %s", digest, amount, currency, account_id)
        return ProcessorPayout(id=f"po_{digest}", status="paid")


def build_processor() -> HttpPaymentProcessor | SandboxPaymentProcessor:
    if settings.PROCESSOR_BASE_URL:
        return HttpPaymentProcessor(settings.PROCESSOR_BASE_URL, settings.PROCESSOR_API_KEY)
    return SandboxPaymentProcessor()
