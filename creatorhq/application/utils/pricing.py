from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from creatorhq.domain.entities.booking import ServiceType

BILLING_INCREMENT_MINUTES = 15
REFERENCE_DURATION_MINUTES = 60
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ServiceRate:
    service_type: ServiceType
    base_price: Decimal  # price for REFERENCE_DURATION_MINUTES
    flat_per_minute: Decimal | None = None

    @property
    def price_per_minute(self) -> Decimal:
        if self.flat_per_minute is not None:
            return self.flat_per_minute
        return self.base_price / REFERENCE_DURATION_MINUTES


RATE_TABLE: dict[ServiceType, ServiceRate] = {
    ServiceType.consultation: ServiceRate(ServiceType.consultation, Decimal("20")),
    ServiceType.workshop: ServiceRate(ServiceType.workshop, Decimal("50")),
    ServiceType.mentoring: ServiceRate(ServiceType.mentoring, Decimal("30")),
    ServiceType.custom: ServiceRate(ServiceType.custom, Decimal("0"), flat_per_minute=Decimal("1")),
    ServiceType.other: ServiceRate(ServiceType.other, Decimal("0"), flat_per_minute=Decimal("1")),
}


def billable_minutes(duration_minutes: int) -> int:
    """Round a duration up to the next billing increment (61 -> 75)."""
    return math.ceil(duration_minutes / BILLING_INCREMENT_MINUTES) * BILLING_INCREMENT_MINUTES


class RateCalculator:
    def __init__(self, rates: dict[ServiceType, ServiceRate] | None = None) -> None:
        self._rates = rates or RATE_TABLE

    def rate_for(self, service_type: ServiceType) -> ServiceRate:
        return self._rates[ServiceType(service_type)]

    def price(self, service_type: ServiceType, duration_minutes: int) -> Decimal:
        rate = self.rate_for(service_type)
        minutes = billable_minutes(duration_minutes)
        if rate.flat_per_minute is not None:
            amount = rate.flat_per_minute * minutes
        else:
            # multiply before dividing so 75 minutes of a $20/hour rate is exactly 25.00
            amount = rate.base_price * minutes / REFERENCE_DURATION_MINUTES
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


_default_calculator = RateCalculator()


def price(service_type: ServiceType, duration_minutes: int) -> Decimal:
    return _default_calculator.price(service_type, duration_minutes)


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
