# amazbot/errors.py

"""Exception hierarchy shared by the fetch, extraction and command layers."""


class AmazbotError(Exception):
    """Base class for every error raised by amazbot."""


class ConfigError(AmazbotError):
    """Invalid static or runtime configuration (fatal at startup)."""


class InvalidSearchKeyError(AmazbotError, ValueError):
    """A search key string could not be parsed."""


# ── Fetch pipeline ───────────────────────────────────────


class FetchError(AmazbotError):
    """A document could not be fetched."""


class TransportError(FetchError):
    """The HTTP transport failed for a reason other than a timeout."""


class NetworkTimeoutError(FetchError):
    """The request timed out; callers retry indefinitely."""


class RetriableError(FetchError):
    """Upstream rejected the request (502/503); reset session and retry."""

    def __init__(self, status: int, url: str) -> None:
        super().__init__(f"HTTP {status} for {url}")
        self.status = status
        self.url = url


class HTTPStatusError(FetchError):
    """Unexpected, non-retriable HTTP status."""

    def __init__(self, status: int, url: str) -> None:
        super().__init__(f"HTTP {status} for {url}")
        self.status = status
        self.url = url


class LocationError(FetchError):
    """The delivery location could not be changed during a session reset."""


class CaptchaError(FetchError):
    """Base class for captcha challenge failures."""


class CaptchaFormIncompleteError(CaptchaError):
    """The captcha page lacks its image or one of the hidden tokens."""


class CaptchaUnsolvedError(CaptchaError):
    """The solver service returned an error or an empty solution."""


class CaptchaDepthError(CaptchaError):
    """Too many consecutive captcha challenges for a single fetch."""


# ── Extraction ───────────────────────────────────────────


class ExtractionError(AmazbotError):
    """A product page lacked a mandatory element."""


class TitleNotFoundError(ExtractionError):
    """The product title marker was not found."""


class LinkNotFoundError(ExtractionError):
    """The canonical link marker was not found."""


# ── Telegram ─────────────────────────────────────────────


class TelegramError(AmazbotError):
    """The Bot API rejected a call or could not be reached."""
