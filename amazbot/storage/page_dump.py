# amazbot/storage/page_dump.py

"""Writes fetched pages to disk when extraction fails."""

import logging
from pathlib import Path

from bs4 import BeautifulSoup

from amazbot.config.settings import Settings

logger = logging.getLogger("amazbot.storage")


class PageDumper:
    """Persists raw documents for post-mortem inspection."""

    def __init__(self, dumps_dir: Path | None = None) -> None:
        self.dumps_dir: Path = dumps_dir or Settings.DUMPS_DIR

    def dump(self, filename: str, document: BeautifulSoup | str) -> Path | None:
        """Write *document* to ``<dumps_dir>/<filename>``.

        Write failures are logged and ``None`` is returned.
        """
        html = str(document)
        filepath = self.dumps_dir / filename
        try:
            self.dumps_dir.mkdir(parents=True, exist_ok=True)
            with open(filepath, "w", encoding="utf-8") as f:
                f.write(html)
        except OSError as exc:
            logger.error(
                "Couldn't write page dump %s: %s", filepath, exc,
            )
            return None
        logger.info("Saved page dump to %s", filepath)
        return filepath
