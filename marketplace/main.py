"""Command line entry point for the marketplace engine."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from marketplace.api.responses import error_response, match_response
from marketplace.config.environment import EnvironmentConfig
from marketplace.config.exceptions import ConfigurationError
from marketplace.config.loader import load_config, validate_config_file
from marketplace.config.models import AppConfig
from marketplace.domain.exceptions import MarketplaceError
from marketplace.domain.models import ActingUser, UserRole
from marketplace.logging import get_logger
from marketplace.logging.config import configure_logging
from marketplace.matching.service import Matcher
from marketplace.notifications.dispatcher import create_dispatcher
from marketplace.offers.service import OfferService
from marketplace.persistence.database import close_database, init_database
from marketplace.persistence.exceptions import PersistenceError

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """Load configuration and settle the effective log level.

    Log level priority: command line, then LOG_LEVEL, then the config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    env_config.log_level = str(env_config.log_level).upper()
    return app_config, env_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="marketplace",
        description="Marketplace engine - company matching, offer negotiation and project lifecycle",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml if present)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database schema")

    match = commands.add_parser("match", help="Rank companies for a service request")
    match.add_argument("request_id", help="Service request id")
    match.add_argument("--user-id", required=True, help="Acting user id")
    match.add_argument(
        "--role",
        default=UserRole.CUSTOMER.value,
        choices=[role.value for role in UserRole],
        help="Acting user role (default: CUSTOMER)",
    )

    commands.add_parser("expire-offers", help="Mark overdue PENDING offers as EXPIRED")

    validate = commands.add_parser("validate-config", help="Validate a configuration file")
    validate.add_argument("path", type=Path, help="Configuration file to validate")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    args = build_parser().parse_args(argv)

    if args.command == "validate-config":
        return 0 if validate_config_file(args.path) else 1

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )
        init_database(env_config.database_url)

        logger.info(
            "Marketplace engine command starting",
            extra={"event": "cli.starting", "command": args.command},
        )

        if args.command == "init-db":
            print("✓ Database schema is ready")
            return 0

        if args.command == "match":
            return _run_match(args, app_config)

        if args.command == "expire-offers":
            return _run_expire(app_config)

        return 1

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1
    except PersistenceError as e:
        print(f"Database Error: {e}", file=sys.stderr)
        logger.error(
            f"Database error: {e}",
            extra={"event": "cli.failed", "error_type": type(e).__name__},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 130
    finally:
        close_database()


def _run_match(args: argparse.Namespace, app_config: AppConfig) -> int:
    actor = ActingUser(user_id=args.user_id, role=UserRole(args.role))
    matcher = Matcher(matching=app_config.matching, scoring=app_config.scoring)

    try:
        outcome = matcher.match(args.request_id, actor)
    except MarketplaceError as e:
        status, body = error_response(e)
        print(json.dumps(body), file=sys.stderr)
        return 2 if status < 500 else 1

    print(json.dumps(match_response(outcome), indent=2))
    return 0


def _run_expire(app_config: AppConfig) -> int:
    dispatcher = create_dispatcher(app_config.notifications)
    try:
        service = OfferService(dispatcher, config=app_config.offers)
        expired = service.expire_overdue_offers()
    finally:
        dispatcher.shutdown(wait=True)

    print(f"✓ Expired {expired} overdue offer(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
