# amazbot/services/health_checker.py

"""Marketplace and captcha-service connectivity health checker."""

import asyncio
import logging
import random
import time
from dataclasses import dataclass

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import RequestException

from amazbot.config.domains import DOMAINS
from amazbot.config.settings import Settings
from amazbot.services.captcha_client import CaptchaSolver

logger = logging.getLogger("amazbot.health")

_HEALTH_TIMEOUT = 10  # seconds per domain
_SLOW_MS = 5000


@dataclass
class HealthResult:
    """Result of a single health probe."""

    source_id: str
    status: str  # "ok", "slow", "captcha", "down"
    latency_ms: float
    message: str


def probe_domain(domain: str, proxy_url: str = "") -> HealthResult:
    """GET the marketplace home page and classify the answer."""
    profile = DOMAINS[domain]
    headers = {
        **Settings.FINGERPRINT_HEADERS,
        "User-Agent": random.choice(Settings.USER_AGENTS),
    }
    start = time.monotonic()
    try:
        with curl_requests.Session(
            impersonate=Settings.IMPERSONATE_BROWSER,
            proxy=proxy_url or None,
        ) as session:
            resp = session.get(
                profile.base_url,
                headers=headers,
                timeout=_HEALTH_TIMEOUT,
            )
    except RequestException as exc:
        return HealthResult(
            source_id=f"amazon.{domain}",
            status="down",
            latency_ms=(time.monotonic() - start) * 1000,
            message=str(exc)[:80],
        )
    elapsed_ms = (time.monotonic() - start) * 1000

    if resp.status_code not in (200, 202):
        status, message = "down", f"HTTP {resp.status_code}"
    elif "captchacharacters" in resp.text:
        status, message = "captcha", "Captcha requested"
    elif elapsed_ms > _SLOW_MS:
        status, message = "slow", "High latency"
    else:
        status, message = "ok", ""
    return HealthResult(
        source_id=f"amazon.{domain}",
        status=status,
        latency_ms=elapsed_ms,
        message=message,
    )


def probe_captcha(solver: CaptchaSolver) -> HealthResult:
    """Run the solver self-test as a health probe."""
    start = time.monotonic()
    ok = solver.self_test()
    return HealthResult(
        source_id="captcha",
        status="ok" if ok else "down",
        latency_ms=(time.monotonic() - start) * 1000,
        message="" if ok else "Self-test failed",
    )


class HealthChecker:
    """Runs concurrent probes against every domain and the solver."""

    def __init__(
        self,
        solver: CaptchaSolver,
        domains: list[str] | None = None,
        proxy_url: str = "",
    ) -> None:
        self.solver = solver
        self.domains = domains or list(DOMAINS)
        self.proxy_url = proxy_url

    async def check_all(self) -> list[HealthResult]:
        """Probe every domain plus the captcha service concurrently."""
        tasks = [
            asyncio.to_thread(probe_domain, domain, self.proxy_url)
            for domain in self.domains
        ]
        tasks.append(asyncio.to_thread(probe_captcha, self.solver))
        results: list[HealthResult] = list(
            await asyncio.gather(*tasks)
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.source_id,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results
