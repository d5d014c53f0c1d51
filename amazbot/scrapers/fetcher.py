# amazbot/scrapers/fetcher.py

"""Document fetcher: status classification, captcha handling, session reset.

A fetch walks a small state machine::

    FETCHING -> CAPTCHA_CHALLENGED -> RESOLVING -> REVALIDATING -> FETCHING

Each pass through ``REVALIDATING`` increases the depth; a fetch gives up
with :class:`CaptchaDepthError` once the depth exceeds the configured
bound.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum, auto
from urllib.parse import urlencode, urlparse

from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests

from amazbot.config.domains import LOCATION_POSTAL, get_profile
from amazbot.config.settings import Settings
from amazbot.errors import (
    CaptchaDepthError,
    CaptchaFormIncompleteError,
    HTTPStatusError,
    LocationError,
    RetriableError,
)
from amazbot.scrapers.transport import SessionTransport
from amazbot.services.captcha_client import CaptchaSolver

logger = logging.getLogger("amazbot.fetcher")

_RETRIABLE_STATUSES = frozenset({502, 503})
_OK_STATUSES = frozenset({200, 202})

_CAPTCHA_MARKER = "#captchacharacters"
_LOCATION_LINE = "#glow-ingress-line2"
_LOCATION_MODAL = "#nav-global-location-data-modal-action"
_CSRF_HEADER = "anti-csrftoken-a2z"


class FetchState(Enum):
    """States of a single fetch."""

    FETCHING = auto()
    CAPTCHA_CHALLENGED = auto()
    RESOLVING = auto()
    REVALIDATING = auto()


@dataclass
class CaptchaForm:
    """The pieces of a captcha page needed to submit a solution."""

    image_url: str
    amzn: str
    amzn_r: str


@dataclass
class _Request:
    method: str
    url: str
    headers: dict[str, str] | None = None
    data: dict[str, str] | None = None


class DocumentFetcher:
    """Fetches Amazon pages through the shared transport."""

    def __init__(
        self,
        transport: SessionTransport,
        solver: CaptchaSolver,
        max_depth: int | None = None,
        postal_code: str | None = None,
        country_code: str | None = None,
    ) -> None:
        self.transport = transport
        self.solver = solver
        self._max_depth: int = (
            Settings.MAX_CAPTCHA_DEPTH
            if max_depth is None
            else max_depth
        )
        self.postal_code = postal_code or Settings.POSTAL_CODE
        self.country_code = country_code or Settings.COUNTRY_CODE
        self._started: set[str] = set()

    # ── Fetching ─────────────────────────────────────────

    def fetch(
        self,
        url: str,
        item_hint: str = "",
        method: str = "GET",
        headers: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
    ) -> BeautifulSoup:
        """Fetch *url* and return the parsed document.

        Captcha challenges are solved transparently, up to the depth
        bound.  *item_hint* only labels log lines.
        """
        request = _Request(method, url, headers, data)
        state = FetchState.FETCHING
        depth = 0
        doc = BeautifulSoup("", "lxml")
        form = CaptchaForm("", "", "")
        solution = ""

        while True:
            if state is FetchState.FETCHING:
                if depth > self._max_depth:
                    raise CaptchaDepthError(
                        f"captcha recursion aborted on depth {depth}: "
                        f"{item_hint}"
                    )
                doc = self._request_document(request, item_hint)
                if doc.select_one(_CAPTCHA_MARKER) is None:
                    return doc
                logger.warning("Captcha requested: %s", item_hint)
                state = FetchState.CAPTCHA_CHALLENGED

            elif state is FetchState.CAPTCHA_CHALLENGED:
                form = self._read_captcha_form(doc, item_hint)
                state = FetchState.RESOLVING

            elif state is FetchState.RESOLVING:
                solution = self.solver.solve(form.image_url)
                state = FetchState.REVALIDATING

            elif state is FetchState.REVALIDATING:
                request = _Request(
                    "GET",
                    self._validation_url(request.url, form, solution),
                )
                depth += 1
                state = FetchState.FETCHING

    def _request_document(
        self, request: _Request, item_hint: str,
    ) -> BeautifulSoup:
        """Send one request and classify its status."""
        logger.debug("Request %s %s: %s", request.method, request.url, item_hint)
        resp: curl_requests.Response = self.transport.request(
            request.method,
            request.url,
            headers=request.headers,
            data=request.data,
        )
        status = resp.status_code
        if status in _RETRIABLE_STATUSES:
            raise RetriableError(status, request.url)
        if status not in _OK_STATUSES:
            raise HTTPStatusError(status, request.url)
        return BeautifulSoup(resp.text, "lxml")

    @staticmethod
    def _read_captcha_form(
        doc: BeautifulSoup, item_hint: str,
    ) -> CaptchaForm:
        image_url = ""
        for img in doc.select("form img"):
            src = img.get("src")
            if src:
                image_url = str(src)
                break
        if not image_url:
            raise CaptchaFormIncompleteError(
                f"couldn't get captcha image: {item_hint}"
            )

        tokens: dict[str, str] = {}
        for field in doc.select("form input"):
            name = field.get("name")
            value = field.get("value")
            if name in ("amzn", "amzn-r") and value:
                tokens[str(name)] = str(value)
        for name in ("amzn", "amzn-r"):
            if not tokens.get(name):
                raise CaptchaFormIncompleteError(
                    f"couldn't get {name} value: {item_hint}"
                )
        return CaptchaForm(image_url, tokens["amzn"], tokens["amzn-r"])

    @staticmethod
    def _validation_url(
        url: str, form: CaptchaForm, solution: str,
    ) -> str:
        parsed = urlparse(url)
        query = urlencode({
            "amzn": form.amzn,
            "amzn-r": form.amzn_r,
            "field-keywords": solution,
        })
        return (
            f"{parsed.scheme}://{parsed.netloc}"
            f"/errors/validateCaptcha?{query}"
        )

    # ── Session reset ────────────────────────────────────

    def ensure_session(self, domain: str) -> None:
        """Reset the session the first time *domain* is used."""
        if domain in self._started:
            return
        self.reset(domain)

    def invalidate(self, domain: str) -> None:
        """Force the next :meth:`ensure_session` for *domain* to reset."""
        self._started.discard(domain)

    def reset(self, domain: str) -> None:
        """New cookies, new identity, and the delivery location set.

        Raises :class:`LocationError` when the location-change flow
        cannot find its modal or token.  A domain whose reset failed
        is reset again by the next :meth:`ensure_session`.
        """
        logger.info("Resetting session for amazon.%s", domain)
        profile = get_profile(domain)
        self._started.discard(domain)
        self.transport.reset_cookies()
        self.transport.rotate_identity()

        doc = self.fetch(profile.base_url)
        if self._has_location(doc):
            logger.debug("Delivery location already set for %s", domain)
        else:
            self._change_location(domain, doc)
        self._started.add(domain)

    def _has_location(self, doc: BeautifulSoup) -> bool:
        for el in doc.select(_LOCATION_LINE):
            if self.postal_code in el.get_text():
                return True
        return False

    def _change_location(self, domain: str, doc: BeautifulSoup) -> None:
        profile = get_profile(domain)
        modal_url, modal_token = self._read_location_modal(doc)

        url = f"{profile.base_url}/{modal_url.lstrip('/')}"
        modal_doc = self.fetch(url, headers={_CSRF_HEADER: modal_token})
        token = self._read_csrf_token(modal_doc)

        form: dict[str, str]
        if profile.location_method == LOCATION_POSTAL:
            form = {
                "locationType": "LOCATION_INPUT",
                "zipCode": self.postal_code,
            }
        else:
            form = {
                "locationType": "COUNTRY",
                "district": self.country_code,
                "countryCode": self.country_code,
            }
        form.update({
            "storeContext": "generic",
            "deviceType": "web",
            "pageType": "Gateway",
            "actionSource": "glow",
            "almBrandId": "undefined",
        })
        self.fetch(
            f"{profile.base_url}/gp/delivery/ajax/address-change.html",
            method="POST",
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                _CSRF_HEADER: token,
            },
            data=form,
        )
        logger.info("Delivery location changed for amazon.%s", domain)

    @staticmethod
    def _read_location_modal(doc: BeautifulSoup) -> tuple[str, str]:
        """Return ``(url, csrf_token)`` from the location modal descriptor."""
        for el in doc.select(_LOCATION_MODAL):
            raw = el.get("data-a-modal")
            if not raw:
                continue
            try:
                modal = json.loads(str(raw))
            except json.JSONDecodeError as exc:
                logger.warning("Couldn't decode location modal: %s", exc)
                continue
            url = str(modal.get("url", ""))
            token = str(
                (modal.get("ajaxHeaders") or {}).get(_CSRF_HEADER, "")
            )
            if url:
                return url, token
        raise LocationError("couldn't find location modal")

    @staticmethod
    def _read_csrf_token(doc: BeautifulSoup) -> str:
        for script in doc.select("script"):
            text = script.get_text()
            idx = text.find("CSRF_TOKEN")
            if idx < 0:
                continue
            parts = text[idx:].split('"')
            if len(parts) >= 2 and parts[1]:
                return parts[1]
        raise LocationError("couldn't find location CSRF token")
