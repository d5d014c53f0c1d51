# amazbot/models/prices.py

"""Condition tiers and the fixed per-tier price vector."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import IntEnum


class ConditionTier(IntEnum):
    """Offer condition, from new down to the worst used grade."""

    NEW = 0
    USED_LIKE_NEW = 1
    USED_VERY_GOOD = 2
    USED_GOOD = 3
    USED_ACCEPTABLE = 4


TIER_COUNT = len(ConditionTier)


def _zero_prices() -> list[float]:
    return [0.0] * TIER_COUNT


@dataclass
class PriceVector:
    """Minimum total price per condition tier.

    ``0.0`` means the tier was not observed, never that it is free.
    """

    values: list[float] = field(default_factory=_zero_prices)

    def __post_init__(self) -> None:
        self.values = [float(v) for v in self.values]
        if len(self.values) != TIER_COUNT:
            msg = (
                f"expected {TIER_COUNT} tier prices, "
                f"got {len(self.values)}"
            )
            raise ValueError(msg)

    @classmethod
    def from_iterable(cls, values: Iterable[float]) -> "PriceVector":
        """Build a vector from any iterable of five numbers."""
        return cls(list(values))

    def __getitem__(self, tier: ConditionTier) -> float:
        return self.values[tier]

    def __setitem__(self, tier: ConditionTier, price: float) -> None:
        self.values[tier] = float(price)

    def __iter__(self) -> Iterator[float]:
        return iter(self.values)

    def items(self) -> Iterator[tuple[ConditionTier, float]]:
        """Yield ``(tier, price)`` pairs in tier order."""
        for tier in ConditionTier:
            yield tier, self.values[tier]

    def offer(self, tier: ConditionTier, price: float) -> bool:
        """Fold an observed offer in, keeping the per-tier minimum.

        Returns True when the offer became the new tier minimum.
        """
        if price <= 0:
            return False
        current = self.values[tier]
        if current == 0 or price < current:
            self.values[tier] = price
            return True
        return False

    def any_found(self) -> bool:
        """True if at least one tier has an observed price."""
        return any(v > 0 for v in self.values)

    def copy(self) -> "PriceVector":
        return PriceVector(list(self.values))

    def to_list(self) -> list[float]:
        return list(self.values)
