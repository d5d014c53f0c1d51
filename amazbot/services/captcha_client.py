# amazbot/services/captcha_client.py

"""Client for the external captcha-solving web service."""

import logging
from urllib.parse import urlparse

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException

from amazbot.config.settings import Settings
from amazbot.errors import CaptchaUnsolvedError, ConfigError

logger = logging.getLogger("amazbot.captcha")


class CaptchaSolver:
    """Resolves captcha images through ``GET <base_url>/<image_url>``.

    A 200 response with a non-empty body is the solution text.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: int | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        if self.base_url:
            parsed = urlparse(self.base_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigError(
                    f"couldn't parse captcha service url {base_url}"
                )
        self._timeout: int = timeout or Settings.CAPTCHA_TIMEOUT

    def solve(self, image_url: str) -> str:
        """Return the text shown in *image_url*.

        Raises :class:`CaptchaUnsolvedError` on any failure.
        """
        if not self.base_url:
            raise CaptchaUnsolvedError("no captcha service configured")
        url = f"{self.base_url}/{image_url}"
        try:
            resp = curl_requests.get(url, timeout=self._timeout)
        except RequestException as exc:
            raise CaptchaUnsolvedError(
                f"captcha service request failed: {exc}"
            ) from exc
        if resp.status_code != 200:
            raise CaptchaUnsolvedError(
                f"captcha service returned HTTP {resp.status_code}"
            )
        solution = resp.text.strip()
        if not solution:
            raise CaptchaUnsolvedError("resolved captcha is empty")
        logger.info("Captcha solved: %s", solution)
        return solution

    def self_test(self) -> bool:
        """Solve a reference image and compare with its known answer."""
        try:
            solution = self.solve(Settings.CAPTCHA_SELF_TEST_IMAGE)
        except CaptchaUnsolvedError as exc:
            logger.warning("Captcha resolver test failed: %s", exc)
            return False
        if solution != Settings.CAPTCHA_SELF_TEST_SOLUTION:
            logger.warning(
                "Captcha resolver test failed: got %r", solution,
            )
            return False
        logger.info("Captcha resolver test succeeded")
        return True
