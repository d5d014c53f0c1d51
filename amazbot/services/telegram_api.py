# amazbot/services/telegram_api.py

"""Minimal Telegram Bot API client over curl_cffi."""

import logging
from typing import Any

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException

from amazbot.config.settings import Settings
from amazbot.errors import ConfigError, TelegramError

logger = logging.getLogger("amazbot.telegram")


class TelegramAPI:
    """Calls ``https://api.telegram.org/bot<token>/<method>``.

    Every call posts a JSON body and unwraps the ``{"ok", "result"}``
    envelope.  Failures raise :class:`TelegramError`.
    """

    def __init__(
        self,
        token: str,
        api_url: str | None = None,
        timeout: int | None = None,
    ) -> None:
        if not token:
            raise ConfigError("telegram token not provided")
        base = (api_url or Settings.TELEGRAM_API_URL).rstrip("/")
        self._base = f"{base}/bot{token}"
        self._timeout: int = timeout or Settings.REQUEST_TIMEOUT
        self.session = curl_requests.Session()

    def close(self) -> None:
        self.session.close()

    def call(
        self,
        method: str,
        payload: dict[str, Any] | None = None,
        timeout: int | None = None,
    ) -> Any:
        """Invoke a Bot API method and return its ``result``."""
        try:
            resp = self.session.post(
                f"{self._base}/{method}",
                json=payload or {},
                timeout=timeout or self._timeout,
            )
        except RequestException as exc:
            raise TelegramError(f"{method} failed: {exc}") from exc

        try:
            body: dict[str, Any] = resp.json()
        except ValueError as exc:
            raise TelegramError(
                f"{method} returned HTTP {resp.status_code}"
            ) from exc
        if not body.get("ok"):
            raise TelegramError(
                f"{method} rejected: "
                f"{body.get('description', resp.status_code)}"
            )
        return body.get("result")

    # ── Methods ──────────────────────────────────────────

    def get_me(self) -> dict[str, Any]:
        return self.call("getMe")

    def send_message(
        self,
        chat_id: int | str,
        text: str,
        buttons: list[tuple[str, str]] | None = None,
        preview: bool = True,
    ) -> dict[str, Any]:
        """Send *text*, optionally with one row of URL buttons."""
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": not preview,
        }
        if buttons:
            payload["reply_markup"] = {
                "inline_keyboard": [[
                    {"text": label, "url": url}
                    for label, url in buttons
                ]],
            }
        return self.call("sendMessage", payload)

    def get_updates(
        self, offset: int = 0, timeout: int | None = None,
    ) -> list[dict[str, Any]]:
        """Long-poll for new updates starting at *offset*."""
        poll = (
            Settings.TELEGRAM_POLL_TIMEOUT if timeout is None else timeout
        )
        result = self.call(
            "getUpdates",
            {
                "offset": offset,
                "timeout": poll,
                "allowed_updates": ["message"],
            },
            timeout=poll + 10,
        )
        return list(result or [])

    def get_chat_administrators(
        self, chat_id: int | str,
    ) -> list[dict[str, Any]]:
        return list(
            self.call("getChatAdministrators", {"chat_id": chat_id}) or []
        )
