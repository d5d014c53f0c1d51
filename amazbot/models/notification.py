# amazbot/models/notification.py

"""Notification destinations and price events."""

from dataclasses import dataclass

from amazbot.models.item import Item
from amazbot.models.prices import ConditionTier


@dataclass(frozen=True)
class Channel:
    """A public channel or group addressed by its ``@handle``."""

    handle: str

    @property
    def chat_id(self) -> str:
        return self.handle


@dataclass(frozen=True)
class DirectChat:
    """A private chat or group addressed by its numeric id."""

    id: int

    @property
    def chat_id(self) -> int:
        return self.id


Destination = Channel | DirectChat


def parse_destination(value: str | int) -> Destination:
    """Map a stored destination string onto its variant.

    Numeric strings (group ids are negative) become :class:`DirectChat`,
    anything else is treated as a channel handle.
    """
    if isinstance(value, int):
        return DirectChat(value)
    text = value.strip()
    try:
        return DirectChat(int(text))
    except ValueError:
        return Channel(text)


@dataclass
class NotificationEvent:
    """A price worth telling *destination* about."""

    destination: str
    item: Item
    tier: ConditionTier
    previous_price: float = 0.0

    @property
    def price(self) -> float:
        return self.item.prices[self.tier]
