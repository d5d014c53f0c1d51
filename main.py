# main.py

"""Entry point for amazbot (Telegram bot or one-off CLI commands)."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from amazbot.config.domains import DOMAINS
from amazbot.config.logging_config import setup_logging
from amazbot.config.settings import Settings

logger = logging.getLogger("amazbot.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_domains = ", ".join(DOMAINS)

    parser = argparse.ArgumentParser(
        prog="amazbot",
        description="Amazon price tracker with Telegram notifications.",
        epilog=f"Supported domains: {valid_domains}",
    )
    parser.add_argument(
        "--token",
        default=Settings.TELEGRAM_TOKEN,
        help="Telegram bot token (env AMAZBOT_TOKEN).",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (env AMAZBOT_DB).",
    )
    parser.add_argument(
        "--captcha",
        default=Settings.CAPTCHA_URL,
        help="Captcha solver service URL (env AMAZBOT_CAPTCHA_URL).",
    )
    parser.add_argument(
        "--proxy",
        default=Settings.PROXY_URL,
        help="Proxy URL: http, https, socks5 or socks5h (env AMAZBOT_PROXY).",
    )
    parser.add_argument(
        "--admin",
        type=int,
        default=Settings.ADMIN_ID,
        help="Telegram id of the administrator (env AMAZBOT_ADMIN).",
    )
    parser.add_argument(
        "--user",
        type=int,
        action="append",
        default=None,
        dest="users",
        help="Telegram id of an allowed user; repeatable (env AMAZBOT_USERS).",
    )
    parser.add_argument(
        "--check",
        default=None,
        metavar="CODE.DOMAIN",
        help="Scrape one product once and print its prices.",
    )
    parser.add_argument(
        "--health",
        action="store_true",
        default=False,
        help="Probe every marketplace and the captcha solver.",
    )
    return parser


def main() -> None:
    """Route to a one-off command or the long-running bot."""
    log_file = setup_logging()
    logger.info("amazbot starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.db:
        Settings.DB_PATH = Path(args.db)

    from amazbot.cli.runner import (
        run_bot_mode,
        run_check,
        run_health_check,
    )

    if args.health:
        exit_code = asyncio.run(
            run_health_check(args.captcha, args.proxy)
        )
    elif args.check:
        exit_code = run_check(args.check, args.captcha, args.proxy)
    else:
        exit_code = run_bot_mode(
            token=args.token,
            captcha_url=args.captcha,
            proxy_url=args.proxy,
            admin_id=args.admin,
            user_ids=args.users or Settings.USER_IDS,
        )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
