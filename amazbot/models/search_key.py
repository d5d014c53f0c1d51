# amazbot/models/search_key.py

"""Canonical identifier of a tracked (destination, product, tier cap)."""

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from amazbot.config.domains import DOMAINS
from amazbot.errors import InvalidSearchKeyError
from amazbot.models.prices import ConditionTier

DEFAULT_MAX_TIER = ConditionTier.USED_ACCEPTABLE

_PRODUCT_CODE_RE = re.compile(r"^[A-Z0-9]+$")


@dataclass(frozen=True)
class SearchKey:
    """A tracked product search.

    Canonical form: ``<destination>/<code>.<domain>[?<max_tier>]``.
    The ``?<max_tier>`` suffix is only rendered for non-default caps,
    so parsing a rendered key always yields an equal key.
    """

    destination: str
    product_id: str
    domain: str
    max_tier: ConditionTier = DEFAULT_MAX_TIER

    @property
    def query(self) -> str:
        """Product code form, ``<code>.<domain>[?<max_tier>]``."""
        query = f"{self.product_id}.{self.domain}"
        if self.max_tier != DEFAULT_MAX_TIER:
            query = f"{query}?{int(self.max_tier)}"
        return query

    def render(self) -> str:
        """Return the canonical string used as map and storage key."""
        return f"{self.destination}/{self.query}"

    def __str__(self) -> str:
        return self.render()

    @classmethod
    def parse(cls, raw: str, default_destination: str = "") -> "SearchKey":
        """Parse a key string, falling back to *default_destination*.

        Accepts ``<destination>/<query>`` or a bare ``<query>``.
        Raises :class:`InvalidSearchKeyError` on any malformed part.
        """
        parts = raw.split("/")
        destination = default_destination
        query = parts[0]
        if len(parts) == 2:
            destination, query = parts
        elif len(parts) > 2:
            raise InvalidSearchKeyError(f"too many '/' in key: {raw!r}")

        destination = destination.strip().lower()
        query = query.strip().replace(" ", "+")
        if not destination:
            raise InvalidSearchKeyError(
                f"no destination chat for key: {raw!r}"
            )
        if not query:
            raise InvalidSearchKeyError(f"empty query in key: {raw!r}")

        product_id, domain, max_tier = _parse_query(query)
        return cls(
            destination=destination,
            product_id=product_id,
            domain=domain,
            max_tier=max_tier,
        )


def _parse_query(query: str) -> tuple[str, str, ConditionTier]:
    """Split ``<code>.<domain>[?<tier>]`` into its parts."""
    code, sep, ext = query.partition(".")
    if not sep:
        raise InvalidSearchKeyError(f"invalid product id: {query!r}")
    code = code.upper()
    if not _PRODUCT_CODE_RE.match(code):
        raise InvalidSearchKeyError(f"invalid product code: {code!r}")

    domain, sep, tier_text = ext.partition("?")
    domain = domain.lower()
    if domain not in DOMAINS:
        raise InvalidSearchKeyError(f"unsupported domain: {domain!r}")

    max_tier = DEFAULT_MAX_TIER
    if sep:
        try:
            max_tier = ConditionTier(int(tier_text))
        except ValueError:
            raise InvalidSearchKeyError(
                f"couldn't parse max tier: {tier_text!r}"
            ) from None
    return code, domain, max_tier


def item_id_from_link(text: str) -> str | None:
    """Find an Amazon product link in *text* and return ``<code>.<domain>``.

    The link must live on an ``amazon.<domain>`` host and carry a
    ``dp/<code>`` path segment; anything else yields ``None``.
    """
    idx = text.find("http")
    if idx < 0:
        return None
    link = text[idx:].split()[0]
    try:
        parsed = urlparse(link)
    except ValueError:
        return None

    host = parsed.netloc.lower()
    marker = host.find("amazon.")
    if marker < 0:
        return None
    domain = host[marker + len("amazon."):]
    domain = domain.split(":", 1)[0]

    segments = parsed.path.split("/")
    for prev, current in zip(segments, segments[1:]):
        if prev == "dp" and current:
            return f"{current}.{domain}"
    return None
