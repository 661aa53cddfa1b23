"""Platform fee configuration backed by settings (PLATFORM_FEE_RATE)."""

from decimal import Decimal

from config.settings import settings


class SettingsFeeConfig:
    def __init__(self, rate: Decimal | None = None) -> None:
        self._rate = settings.PLATFORM_FEE_RATE if rate is None else rate

    async def get_platform_fee_rate(self) -> Decimal:
        if not (Decimal("0") <= self._rate <= Decimal("1")):
            raise ValueError(f"PLATFORM_FEE_RATE must be between 0 and 1, got {self._rate}")
        return self._rate
