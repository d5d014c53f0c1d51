# amazbot/config/domains.py

"""Per-marketplace parameters: tier labels, currency and price formats.

Every supported Amazon domain has one :class:`DomainProfile`.  The table
is static and is validated once at startup by :func:`validate_domains`;
search keys naming a domain outside this table are rejected.
"""

import re
from dataclasses import dataclass

from amazbot.errors import ConfigError
from amazbot.models.prices import TIER_COUNT, ConditionTier

LOCATION_POSTAL = "postal"
LOCATION_COUNTRY = "country"


@dataclass(frozen=True)
class DomainProfile:
    """Localised strings and formats for one Amazon marketplace."""

    domain: str
    used_label: str
    tier_labels: tuple[str, ...]
    currency: str
    price_pattern: re.Pattern[str]
    location_method: str = LOCATION_COUNTRY
    force_english: bool = False

    @property
    def base_url(self) -> str:
        return f"https://www.amazon.{self.domain}"

    def product_url(self, product_id: str) -> str:
        """URL of the product detail page."""
        return f"{self.base_url}/dp/{product_id}"

    def offers_url(self, product_id: str, page: int) -> str:
        """URL of one page of the all-offers feed."""
        url = (
            f"{self.base_url}/gp/aod/ajax/ref=aod_page_2"
            f"?asin={product_id}&pc=dp&pageno={page}"
        )
        if self.force_english:
            url = f"{url}&language=en_US"
        return url

    def tier_label(self, tier: ConditionTier) -> str:
        return self.tier_labels[tier]

    def tier_for_heading(self, heading: str) -> ConditionTier | None:
        """Map an offer heading like ``Used - Very good`` to its tier.

        Returns ``None`` for headings that match no known label.
        """
        text = heading.strip()
        text = text.replace(self.used_label, "", 1)
        text = text.replace("-", "", 1)
        text = text.strip()
        for tier in ConditionTier:
            if text == self.tier_labels[tier]:
                return tier
        return None


_EURO_DOT = re.compile(r"([.0-9]+),([0-9]{2})\s*€")
_DOLLAR = re.compile(r"\$\s*([,0-9]+)\.([0-9]{2})")
_ENGLISH_TIERS = ("New", "Like new", "Very good", "Good", "Acceptable")

DOMAINS: dict[str, DomainProfile] = {
    "es": DomainProfile(
        domain="es",
        used_label="De 2ª mano",
        tier_labels=(
            "Nuevo", "Como nuevo", "Muy bueno", "Bueno", "Aceptable",
        ),
        currency="€",
        price_pattern=_EURO_DOT,
        location_method=LOCATION_POSTAL,
    ),
    "de": DomainProfile(
        domain="de",
        used_label="Gebraucht",
        tier_labels=("Neu", "Wie neu", "Sehr gut", "Gut", "Akzeptabel"),
        currency="€",
        price_pattern=_EURO_DOT,
    ),
    "fr": DomainProfile(
        domain="fr",
        used_label="D'occasion",
        tier_labels=(
            "Neuf", "Comme neuf", "Très bon", "Bon", "Acceptable",
        ),
        currency="€",
        price_pattern=re.compile(r"([ 0-9]+),([0-9]{2})\s*€"),
    ),
    "it": DomainProfile(
        domain="it",
        used_label="Usato",
        tier_labels=(
            "Nuovo",
            "Come nuovo",
            "Ottime condizioni",
            "Buone condizioni",
            "Condizioni accettabili",
        ),
        currency="€",
        price_pattern=_EURO_DOT,
    ),
    "co.uk": DomainProfile(
        domain="co.uk",
        used_label="Used",
        tier_labels=_ENGLISH_TIERS,
        currency="£",
        price_pattern=re.compile(r"£\s*([,0-9]+)\.([0-9]{2})"),
    ),
    "co.jp": DomainProfile(
        domain="co.jp",
        used_label="Used",
        tier_labels=_ENGLISH_TIERS,
        currency="¥",
        price_pattern=re.compile(r"[¥￥]\s*([,0-9]+)"),
        force_english=True,
    ),
    "ca": DomainProfile(
        domain="ca",
        used_label="Used",
        tier_labels=_ENGLISH_TIERS,
        currency="$",
        price_pattern=_DOLLAR,
    ),
    "com.au": DomainProfile(
        domain="com.au",
        used_label="Used",
        tier_labels=_ENGLISH_TIERS,
        currency="$",
        price_pattern=_DOLLAR,
    ),
    "com": DomainProfile(
        domain="com",
        used_label="Used",
        tier_labels=_ENGLISH_TIERS,
        currency="$",
        price_pattern=_DOLLAR,
        force_english=True,
    ),
    "com.br": DomainProfile(
        domain="com.br",
        used_label="Usado",
        tier_labels=("Novo", "Como novo", "Muito bom", "Bom", "Aceitável"),
        currency="R$",
        price_pattern=re.compile(r"R\$\s*([.0-9]+),([0-9]{2})"),
    ),
}


def get_profile(domain: str) -> DomainProfile:
    """Return the profile for *domain* or raise :class:`ConfigError`."""
    try:
        return DOMAINS[domain]
    except KeyError:
        raise ConfigError(f"unsupported domain: {domain}") from None


def validate_domains(
    domains: dict[str, DomainProfile] | None = None,
) -> None:
    """Check every profile is complete; raise ConfigError otherwise."""
    table = DOMAINS if domains is None else domains
    if not table:
        raise ConfigError("domain table is empty")
    for name, profile in table.items():
        if profile.domain != name:
            raise ConfigError(
                f"domain key {name!r} does not match "
                f"profile domain {profile.domain!r}"
            )
        labels = profile.tier_labels
        if len(labels) != TIER_COUNT or not all(labels):
            raise ConfigError(
                f"{name}: expected {TIER_COUNT} non-empty tier labels"
            )
        if len(set(labels)) != TIER_COUNT:
            raise ConfigError(f"{name}: duplicate tier labels")
        if not profile.used_label or not profile.currency:
            raise ConfigError(f"{name}: missing used label or currency")
        if profile.price_pattern.groups < 1:
            raise ConfigError(f"{name}: price pattern has no groups")
        if profile.location_method not in (
            LOCATION_POSTAL, LOCATION_COUNTRY,
        ):
            raise ConfigError(
                f"{name}: unknown location method "
                f"{profile.location_method!r}"
            )
