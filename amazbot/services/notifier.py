# amazbot/services/notifier.py

"""Notification sink: message texts and Telegram delivery."""

import logging
import time

from amazbot.config.domains import DOMAINS
from amazbot.config.settings import Settings
from amazbot.errors import TelegramError
from amazbot.models.notification import (
    Destination,
    NotificationEvent,
    parse_destination,
)
from amazbot.models.prices import ConditionTier
from amazbot.services.telegram_api import TelegramAPI

logger = logging.getLogger("amazbot.notifier")

_LINK_BUTTON = "🛒 Ver en Amazon"


def format_price(domain: str, amount: float) -> str:
    """``12.50€`` for euro marketplaces, ``£12.50`` elsewhere."""
    profile = DOMAINS.get(domain)
    currency = profile.currency if profile else "€"
    if currency == "€":
        return f"{amount:.2f}{currency}"
    return f"{currency}{amount:.2f}"


def _footer(destination: str) -> str:
    if destination.startswith("@"):
        return f"\n\n📣 Más anuncios en {destination}"
    return ""


def price_drop_message(event: NotificationEvent) -> str:
    item = event.item
    return (
        "⚡️ BAJADA DE PRECIO\n\n"
        f"{item.title}\n\n"
        f"✅ Precio: {format_price(item.domain, event.price)}\n"
        f"🚫 Anterior: {format_price(item.domain, event.previous_price)}"
        f"\n\n🔗 {item.link}"
        f"{_footer(event.destination)}"
    )


def used_offer_message(event: NotificationEvent) -> str:
    item = event.item
    profile = DOMAINS.get(item.domain)
    label = profile.tier_label(event.tier) if profile else ""
    heading = "♻️ REACONDICIONADO"
    if label:
        heading = f"{heading} ({label})"
    return (
        f"{heading}\n\n"
        f"{item.title}\n\n"
        f"✅ Precio: {format_price(item.domain, event.price)}\n"
        f"🚫 Nuevo: {format_price(item.domain, item.min_price)}"
        f"\n\n🔗 {item.link}"
        f"{_footer(event.destination)}"
    )


def event_message(event: NotificationEvent) -> str:
    if event.tier == ConditionTier.NEW:
        return price_drop_message(event)
    return used_offer_message(event)


class TelegramNotifier:
    """Delivers texts to channels, chats and the administrator.

    Sends are best effort: failures are logged, never retried.  Each
    send is followed by a short pause to stay under Telegram's rate
    limits.
    """

    def __init__(
        self,
        api: TelegramAPI,
        admin_id: int = 0,
        delay: float | None = None,
    ) -> None:
        self.api = api
        self.admin_id = admin_id
        self._delay: float = (
            Settings.MESSAGE_DELAY if delay is None else delay
        )

    def send(
        self,
        destination: Destination | str | int,
        text: str,
        buttons: list[tuple[str, str]] | None = None,
        preview: bool = True,
    ) -> bool:
        """Send *text*; returns False when delivery failed."""
        if isinstance(destination, (str, int)):
            destination = parse_destination(destination)
        try:
            self.api.send_message(
                destination.chat_id, text, buttons=buttons, preview=preview,
            )
            return True
        except TelegramError as exc:
            logger.error(
                "Couldn't send message to %s: %s",
                destination.chat_id,
                exc,
            )
            return False
        finally:
            time.sleep(self._delay)

    def send_admin(self, text: str) -> bool:
        if not self.admin_id:
            return False
        return self.send(self.admin_id, text)

    def notify(self, event: NotificationEvent) -> bool:
        """Render *event* and send it to its destination."""
        buttons = (
            [(_LINK_BUTTON, event.item.link)] if event.item.link else None
        )
        logger.info(
            "Notifying %s: %s tier %d at %.2f",
            event.destination,
            event.item.key,
            int(event.tier),
            event.price,
        )
        return self.send(
            event.destination, event_message(event), buttons=buttons,
        )
