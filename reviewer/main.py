"""
Command line entry point. Runs a single pass and exits; schedule it with cron.

    app-review-relay --app-id 284882215 --webhook https://hooks.slack.com/services/...

Every flag falls back to the matching setting in .env (see reviewer/config.py).
"""

import argparse
import logging
import sys
from typing import Optional

from reviewer import config
from reviewer.config import ConfigError, parse_countries
from reviewer.models import NotificationConfig
from reviewer.runner import Reviewer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="app-review-relay",
        description="Post new App Store reviews to a Slack channel.",
    )
    parser.add_argument("--app-id", default=config.APP_ID,
                        help="Numeric App Store id (env: REVIEWER_APP_ID)")
    parser.add_argument("--max-pages", type=int, default=None,
                        help="Feed pages to check per country (env: REVIEWER_MAX_PAGES, default 3)")
    parser.add_argument("--countries", default=None,
                        help='Storefronts as "code:Name,..." (env: REVIEWER_COUNTRIES)')
    parser.add_argument("--webhook", default=config.SLACK_WEBHOOK_URL,
                        help="Slack incoming webhook URL (env: SLACK_WEBHOOK_URL)")
    parser.add_argument("--channel", default=config.SLACK_CHANNEL,
                        help="Override the webhook's default channel")
    parser.add_argument("--storage-dir", default=config.STORAGE_DIR,
                        help="Folder for the seen-review database (default: %(default)s)")
    parser.add_argument("--log-level", default=config.LOG_LEVEL,
                        help="DEBUG, INFO, WARNING or ERROR (default: %(default)s)")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    log = logging.getLogger("reviewer")

    try:
        max_pages = args.max_pages if args.max_pages is not None else config.get_max_pages()
        countries = parse_countries(args.countries) if args.countries else config.get_countries()
        reviewer = Reviewer(
            args.app_id,
            max_pages=max_pages,
            countries=countries,
            storage_dir=args.storage_dir,
            logger=log,
        )
    except ConfigError as e:
        log.error("Invalid configuration: %s", e)
        return 2

    notification = NotificationConfig(
        endpoint=args.webhook or None,
        channel=args.channel,
        username=config.SLACK_USERNAME,
        icon_url=config.SLACK_ICON_URL,
    )
    with reviewer:
        reviewer.run(notification)
    return 0


if __name__ == "__main__":
    sys.exit(main())
