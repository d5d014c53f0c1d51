# amazbot/models/extraction.py

"""Result of one extraction pass over a product."""

from dataclasses import dataclass, field

from amazbot.models.prices import PriceVector


@dataclass
class Extraction:
    """Facts scraped from a product page and its offers feed."""

    item_id: str
    domain: str
    title: str
    link: str
    prices: PriceVector = field(default_factory=PriceVector)

    @property
    def prices_found(self) -> bool:
        return self.prices.any_found()
