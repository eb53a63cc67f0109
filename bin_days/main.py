import argparse
import asyncio
import json
import logging
from typing import Any, Mapping, Optional

from collection_schedule.config import (ADDRESS_CONFIG_PATH, LOG_LEVEL,
                                        RUN_TIMEOUT_SECONDS)
from collection_schedule.deadline import RunDeadline
from collection_schedule.exceptions import ConfigError, StateStoreError
from collection_schedule.run_config import get_force_notify, load_run_config
from collection_schedule.services.email_service import send_test_email

from .app_factory import (create_email_service, create_orchestrator,
                          initialize_app)

logger = logging.getLogger(__name__)

# Left unspent so the run can close the browser before the host stops it.
HOST_SAFETY_MARGIN_SECONDS = 30


def _setup() -> None:
    try:
        initialize_app()
    except StateStoreError as e:
        logging.basicConfig(
            level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        logger.warning(f"State database unavailable, logging to console only: {e}")


def _run_budget(context: Any) -> float:
    """Uses the host's remaining time when it reports one, capped by RUN_TIMEOUT_SECONDS."""
    remaining_ms = getattr(context, "get_remaining_time_in_millis", None)
    if callable(remaining_ms):
        return max(min(remaining_ms() / 1000 - HOST_SAFETY_MARGIN_SECONDS, RUN_TIMEOUT_SECONDS), 0)
    return RUN_TIMEOUT_SECONDS


def daily(event: Optional[Mapping[str, Any]] = None, context: Any = None) -> dict:
    """
    Hosted entry point for the daily bin check.

    Args:
        event: Invocation payload; "forceNotify" enables force mode.
        context: Host invocation context, used for its remaining time when present.

    Returns:
        A success result with the run summary.

    Raises:
        ConfigError: If the address configuration is invalid.
        BrowserLaunchError: If the browser cannot be started.
    """
    _setup()
    logger.info("=== Daily bin check starting ===")
    logger.info(f"Event: {json.dumps(event or {}, default=str)}")

    try:
        config = load_run_config(ADDRESS_CONFIG_PATH)
    except ConfigError:
        logger.exception("Failed to load config.")
        raise

    force_mode = get_force_notify(event)
    orchestrator = create_orchestrator(config.timezone)
    summary = asyncio.run(
        orchestrator.run(config, force_mode=force_mode, deadline=RunDeadline(_run_budget(context)))
    )
    logger.info("=== Daily bin check completed successfully ===")
    return {"statusCode": 200, "body": "ok", "summary": summary.to_dict()}


def main():
    parser = argparse.ArgumentParser(description="Bin day notifier runner.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the daily bin check.")
    run_parser.add_argument(
        "--force", action="store_true", help="Announce the next collection even if it is not tomorrow."
    )

    test_parser = subparsers.add_parser("send-test", help="Send a test email through Gmail.")
    test_parser.add_argument("--to", help="Recipient; defaults to the configured sender.")

    args = parser.parse_args()

    if args.command == "run":
        result = daily({"forceNotify": args.force})
        print(json.dumps(result["summary"], indent=2))
    elif args.command == "send-test":
        _setup()
        message_id = send_test_email(create_email_service(), args.to)
        logger.info(f"Test email sent (message ID {message_id}).")


if __name__ == "__main__":
    main()
