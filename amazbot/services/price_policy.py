# amazbot/services/price_policy.py

"""Turns a fresh price snapshot into notification events.

Rules, applied per tier up to the key's tier cap:

1. A tier with no observed price (``0.0``) is skipped.
2. On the first run (no stored ``min_price``) tier 0 is skipped; the
   snapshot only establishes the baseline minimum.
3. Tier 0 fires only on a new all-time minimum, which also updates
   ``min_price``.
4. A used tier is skipped when its stored price was nonzero and the new
   price is not strictly lower.
5. A used tier is skipped unless it is strictly cheaper than the best
   new price (``min_price``).
"""

import logging
from dataclasses import dataclass, field

from amazbot.models.extraction import Extraction
from amazbot.models.item import Item
from amazbot.models.notification import NotificationEvent
from amazbot.models.prices import ConditionTier, PriceVector
from amazbot.models.search_key import SearchKey

logger = logging.getLogger("amazbot.policy")


@dataclass
class PriceDecision:
    """Updated item state plus the events it produced."""

    item: Item
    events: list[NotificationEvent] = field(default_factory=list)
    new_minimum: bool = False


def decide(
    key: SearchKey,
    stored: Item | None,
    extraction: Extraction,
) -> PriceDecision:
    """Compare *extraction* with *stored* and build the decision."""
    previous_min = stored.min_price if stored else 0.0
    previous_prices = stored.prices if stored else PriceVector()
    snapshot = extraction.prices

    item = Item(
        item_id=extraction.item_id,
        domain=extraction.domain,
        title=extraction.title,
        link=extraction.link,
        min_price=previous_min,
        prices=snapshot.copy(),
    )

    new_price = snapshot[ConditionTier.NEW]
    new_minimum = new_price > 0 and (
        previous_min == 0 or new_price < previous_min
    )
    if new_minimum:
        item.min_price = new_price

    decision = PriceDecision(item=item, new_minimum=new_minimum)
    for tier, price in snapshot.items():
        if tier > key.max_tier:
            break
        if price == 0:
            continue
        if tier == ConditionTier.NEW:
            if previous_min == 0 or not new_minimum:
                continue
            previous = previous_min
        else:
            previous = previous_prices[tier]
            if previous > 0 and price >= previous:
                continue
            if item.min_price > 0 and price >= item.min_price:
                continue
        decision.events.append(
            NotificationEvent(
                destination=key.destination,
                item=item.copy(),
                tier=tier,
                previous_price=previous,
            )
        )

    if decision.events:
        logger.info(
            "%s: %d event(s) for tiers %s",
            key,
            len(decision.events),
            [int(e.tier) for e in decision.events],
        )
    return decision
