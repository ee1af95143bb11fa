"""Entry point for running the service as a module.

    python -m freelance_plans [serve]        run the HTTP API (default)
    python -m freelance_plans init-db        create tables and seed plans
    python -m freelance_plans sweep-expired  expire overdue subscriptions once
    python -m freelance_plans create-user    create an account (e.g. the first admin)
"""

import argparse
import getpass
import os
import sys

import uvicorn

from freelance_plans.config import ConfigurationError
from freelance_plans.database import StorageUnavailableError


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "json"),
        help="Log output format (default: json)",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/settings.yaml"),
        help="Path to settings.yaml configuration file (default: config/settings.yaml)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="freelance_plans",
        description="Freelance Plans - subscription plans and freelancer subscriptions",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API (default)")
    serve.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind to (default: 0.0.0.0)",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8080")),
        help="Port to bind to (default: 8080)",
    )
    serve.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Enable auto-reload for development (default: false)",
    )
    _add_common_arguments(serve)

    init_db = subparsers.add_parser("init-db", help="Create tables and seed the plan catalog")
    _add_common_arguments(init_db)

    sweep = subparsers.add_parser("sweep-expired", help="Expire overdue subscriptions once")
    _add_common_arguments(sweep)

    create_user = subparsers.add_parser("create-user", help="Create a user account")
    create_user.add_argument("--email", required=True, help="Login email")
    create_user.add_argument(
        "--role",
        choices=["admin", "client", "freelancer"],
        default="admin",
        help="Account role (default: admin)",
    )
    create_user.add_argument("--first-name", default="", help="First name")
    create_user.add_argument("--last-name", default="", help="Last name")
    create_user.add_argument(
        "--password",
        default=os.getenv("USER_PASSWORD"),
        help="Password (default: USER_PASSWORD env var, else prompt)",
    )
    create_user.add_argument("--verified", action="store_true", help="Mark the email as verified")
    _add_common_arguments(create_user)

    return parser


def _serve(args: argparse.Namespace) -> int:
    if args.log_format == "console":
        print("=" * 60)
        print("Freelance Plans v0.1.0")
        print("=" * 60)
        print(f"Host: {args.host}")
        print(f"Port: {args.port}")
        print(f"Log Level: {args.log_level}")
        print(f"Config: {args.config}")
        print("=" * 60)

    try:
        uvicorn.run(
            "freelance_plans.main:app",
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            reload=args.reload,
            access_log=False,  # RequestLoggingMiddleware logs requests
        )
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
    return 0


def _init_db(args: argparse.Namespace) -> int:
    from freelance_plans.config import get_config
    from freelance_plans.database import get_database
    from freelance_plans.repositories.plan_catalog import get_plan_catalog

    get_database().create_all()
    seeded = get_plan_catalog().seed_plans(get_config().seed_plans)
    print(f"Database ready, {seeded} plan(s) seeded")
    return 0


def _sweep_expired(args: argparse.Namespace) -> int:
    from freelance_plans.services.subscription_engine import get_subscription_engine

    expired = get_subscription_engine().expire_overdue()
    print(f"{len(expired)} subscription(s) marked as expired")
    return 0


def _create_user(args: argparse.Namespace) -> int:
    from freelance_plans.models.user import Role
    from freelance_plans.repositories.user_repository import (
        EmailAlreadyRegisteredError,
        get_user_repository,
    )
    from freelance_plans.security import hash_password

    password = args.password or getpass.getpass("Password: ")
    try:
        user = get_user_repository().create(
            email=args.email,
            password_hash=hash_password(password),
            role=Role[args.role.upper()],
            first_name=args.first_name,
            last_name=args.last_name,
            is_verified=args.verified,
        )
    except EmailAlreadyRegisteredError as e:
        print(str(e), file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Invalid password: {e}", file=sys.stderr)
        return 1

    print(f"Created {user.role.name.lower()} user {user.id} <{user.email}>")
    return 0


_COMMANDS = {
    "serve": _serve,
    "init-db": _init_db,
    "sweep-expired": _sweep_expired,
    "create-user": _create_user,
}


def main(argv=None) -> None:
    """Main entry point for the service."""
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in _COMMANDS and argv[0] not in ("-h", "--help"):
        argv.insert(0, "serve")
    args = parser.parse_args(argv)

    # Set environment variables for application
    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["CONFIG_PATH"] = args.config

    if args.command != "serve":
        from freelance_plans.logging_config import configure_logging

        configure_logging(log_level=args.log_level, json_format=args.log_format == "json")

    try:
        code = _COMMANDS[args.command](args)
    except (ConfigurationError, StorageUnavailableError) as e:
        print(f"{args.command} failed: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
