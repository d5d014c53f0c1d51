# amazbot/scrapers/transport.py

"""Serialized, paced HTTP transport with a rotating browser identity."""

import logging
import random
import threading
from urllib.parse import urlparse

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException, Timeout

from amazbot.config.settings import Settings
from amazbot.errors import ConfigError, NetworkTimeoutError, TransportError

logger = logging.getLogger("amazbot.transport")

_PROXY_SCHEMES = frozenset({"http", "https", "socks5", "socks5h"})


def validate_proxy(proxy_url: str) -> str | None:
    """Return a usable proxy URL, ``None`` for no proxy.

    Raises :class:`ConfigError` for an unsupported scheme or a
    missing host/port.
    """
    if not proxy_url:
        return None
    try:
        parsed = urlparse(proxy_url)
        port = parsed.port
    except ValueError as exc:
        raise ConfigError(
            f"couldn't parse proxy {proxy_url}: {exc}"
        ) from exc
    if parsed.scheme not in _PROXY_SCHEMES:
        raise ConfigError(
            f"unsupported proxy scheme: {parsed.scheme or '(none)'}"
        )
    if not parsed.hostname or port is None:
        raise ConfigError(f"proxy needs host and port: {proxy_url}")
    return proxy_url


class SessionTransport:
    """HTTP transport shared by every fetch against Amazon.

    Only one request is in flight at a time.  The lock is held for the
    request and for ``request_delay`` seconds afterwards, so callers on
    other threads queue up behind the pacing delay as well.  The delay
    waits on *stop*, which cuts it short on shutdown.
    """

    def __init__(
        self,
        proxy_url: str = "",
        stop: threading.Event | None = None,
        request_delay: float | None = None,
        request_timeout: int | None = None,
    ) -> None:
        self._proxy = validate_proxy(proxy_url)
        self._stop = stop or threading.Event()
        self._delay: float = (
            Settings.REQUEST_DELAY
            if request_delay is None
            else request_delay
        )
        self._timeout: int = (
            request_timeout or Settings.REQUEST_TIMEOUT
        )
        self._lock = threading.Lock()
        self.user_agent: str = random.choice(Settings.USER_AGENTS)
        self.session = self._new_session()
        if self._proxy:
            logger.info("Using proxy %s", self._proxy)

    def _new_session(self) -> curl_requests.Session:
        return curl_requests.Session(
            impersonate=Settings.IMPERSONATE_BROWSER,
            proxy=self._proxy,
        )

    def rotate_identity(self) -> str:
        """Pick a new user agent for subsequent requests."""
        self.user_agent = random.choice(Settings.USER_AGENTS)
        logger.debug("Identity rotated: %s", self.user_agent)
        return self.user_agent

    def reset_cookies(self) -> None:
        """Replace the session, discarding every stored cookie."""
        with self._lock:
            self.session.close()
            self.session = self._new_session()
        logger.debug("Cookie store reset")

    def close(self) -> None:
        with self._lock:
            self.session.close()

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
    ) -> curl_requests.Response:
        """Send one request with the fingerprint headers applied.

        Raises :class:`NetworkTimeoutError` on timeouts and
        :class:`TransportError` on any other transport failure.
        """
        merged: dict[str, str] = {
            **Settings.FINGERPRINT_HEADERS,
            "User-Agent": self.user_agent,
            **(headers or {}),
        }
        with self._lock:
            try:
                return self.session.request(
                    method,
                    url,
                    headers=merged,
                    data=data,
                    timeout=self._timeout,
                )
            except Timeout as exc:
                raise NetworkTimeoutError(
                    f"request to {url} timed out"
                ) from exc
            except RequestException as exc:
                raise TransportError(
                    f"request to {url} failed: {exc}"
                ) from exc
            finally:
                self._stop.wait(self._delay)
