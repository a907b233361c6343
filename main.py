# main.py

"""Entry point for the pricewatch monitoring engine."""

import argparse
import asyncio
import logging
import sys

from pricewatch.config.logging_config import setup_logging
from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    periods = ", ".join([*Settings.HISTORY_PERIODS, "all"])

    parser = argparse.ArgumentParser(
        prog="pricewatch",
        description="Product price monitoring and drop alerts.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser(
        "run-once",
        help="Run one price update cycle now.",
    )

    schedule = commands.add_parser(
        "schedule",
        help="Run price update cycles on a schedule.",
    )
    cadence = schedule.add_mutually_exclusive_group()
    cadence.add_argument(
        "--cron",
        default=None,
        help=f"Crontab expression (default: '{Settings.SCHEDULE}').",
    )
    cadence.add_argument(
        "--every",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Fixed interval in seconds instead of a crontab.",
    )

    history = commands.add_parser(
        "history",
        help="Show the price history of a product.",
    )
    history.add_argument("asin", help="Product identifier (ASIN).")
    history.add_argument(
        "-p",
        "--period",
        default="all",
        help=f"Window to show: {periods} (default: all).",
    )

    track = commands.add_parser(
        "track",
        help="Subscribe a user to a product.",
    )
    track.add_argument("asin", help="Product identifier (ASIN).")
    track.add_argument("-u", "--user", required=True, dest="user_ref")
    track.add_argument(
        "-t",
        "--target",
        type=float,
        default=None,
        dest="target_price",
        help="Alert when the price falls to or below this value.",
    )
    track.add_argument(
        "--threshold",
        type=float,
        default=None,
        help=(
            "Alert on a drop of at least this percent "
            f"(default: {Settings.DEFAULT_ALERT_THRESHOLD:g})."
        ),
    )
    track.add_argument("-n", "--notes", default="")

    untrack = commands.add_parser(
        "untrack",
        help="Remove a user's subscription to a product.",
    )
    untrack.add_argument("asin", help="Product identifier (ASIN).")
    untrack.add_argument("-u", "--user", required=True, dest="user_ref")

    update = commands.add_parser(
        "update",
        help="Change a user's alert settings for a product.",
    )
    update.add_argument("asin", help="Product identifier (ASIN).")
    update.add_argument("-u", "--user", required=True, dest="user_ref")
    target = update.add_mutually_exclusive_group()
    target.add_argument(
        "-t",
        "--target",
        type=float,
        default=None,
        dest="target_price",
        help="New target price.",
    )
    target.add_argument(
        "--clear-target",
        action="store_true",
        help="Remove the target price.",
    )
    update.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="New percent-drop threshold.",
    )
    alerts = update.add_mutually_exclusive_group()
    alerts.add_argument(
        "--enable",
        action="store_const",
        const=True,
        dest="enabled",
        help="Resume alerts (and refreshes) for this subscription.",
    )
    alerts.add_argument(
        "--disable",
        action="store_const",
        const=False,
        dest="enabled",
        help="Pause alerts for this subscription.",
    )
    update.add_argument("-n", "--notes", default=None)

    tracked = commands.add_parser(
        "tracked",
        help="List the products a user tracks.",
    )
    tracked.add_argument("-u", "--user", required=True, dest="user_ref")

    commands.add_parser(
        "products",
        help="List every stored product.",
    )
    return parser


def _run_scheduler(args: argparse.Namespace) -> int:
    """Run the scheduler until Ctrl-C."""
    from pricewatch.cli.runner import run_scheduler

    schedule: float | str | None = (
        args.every if args.every is not None else args.cron
    )
    try:
        return asyncio.run(run_scheduler(schedule))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 0


def main() -> None:
    """Route the selected subcommand to its runner."""
    log_file = setup_logging()
    logger.info("pricewatch starting, log file: %s", log_file)

    args = _build_parser().parse_args()

    from pricewatch.cli import runner

    if args.command == "run-once":
        exit_code = asyncio.run(runner.run_once())
    elif args.command == "schedule":
        exit_code = _run_scheduler(args)
    elif args.command == "history":
        exit_code = runner.show_history(args.asin, args.period)
    elif args.command == "track":
        exit_code = asyncio.run(
            runner.track_product(
                asin=args.asin,
                user_ref=args.user_ref,
                target_price=args.target_price,
                threshold=args.threshold,
                notes=args.notes,
            )
        )
    elif args.command == "update":
        exit_code = runner.update_tracking(
            asin=args.asin,
            user_ref=args.user_ref,
            target_price=args.target_price,
            clear_target=args.clear_target,
            threshold=args.threshold,
            enabled=args.enabled,
            notes=args.notes,
        )
    elif args.command == "tracked":
        exit_code = runner.list_tracked(args.user_ref)
    elif args.command == "products":
        exit_code = runner.list_products()
    else:
        exit_code = runner.untrack_product(args.asin, args.user_ref)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
