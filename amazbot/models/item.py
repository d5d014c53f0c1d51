# amazbot/models/item.py

"""Tracked product state persisted between polling cycles."""

from dataclasses import dataclass, field
from typing import Any

from amazbot.models.prices import PriceVector


@dataclass
class Item:
    """A tracked Amazon listing and its last known prices."""

    item_id: str
    domain: str
    title: str = ""
    link: str = ""
    min_price: float = 0.0
    prices: PriceVector = field(default_factory=PriceVector)

    @property
    def key(self) -> str:
        """Product code form ``<code>.<domain>``."""
        return f"{self.item_id}.{self.domain}"

    def copy(self) -> "Item":
        return Item(
            item_id=self.item_id,
            domain=self.domain,
            title=self.title,
            link=self.link,
            min_price=self.min_price,
            prices=self.prices.copy(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the JSON shape stored in the ``db`` bucket."""
        return {
            "id": self.item_id,
            "domain": self.domain,
            "link": self.link,
            "title": self.title,
            "min_price": self.min_price,
            "prices": self.prices.to_list(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Item | None":
        """Rebuild an item from its stored form.

        Returns ``None`` for the empty placeholder written when a
        search is registered but has not been extracted yet.
        """
        item_id = str(data.get("id", ""))
        if not item_id:
            return None
        raw_prices = data.get("prices") or []
        try:
            prices = PriceVector.from_iterable(raw_prices)
        except (TypeError, ValueError):
            prices = PriceVector()
        return cls(
            item_id=item_id,
            domain=str(data.get("domain", "")),
            title=str(data.get("title", "")),
            link=str(data.get("link", "")),
            min_price=float(data.get("min_price", 0.0) or 0.0),
            prices=prices,
        )
