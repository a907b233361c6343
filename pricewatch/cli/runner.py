# pricewatch/cli/runner.py

"""Operator entry points: cycles, schedules, subscriptions and history."""

import asyncio
import logging
from typing import Any

from rich.console import Console
from rich.table import Table

from pricewatch.catalog.rainforest_catalog import RainforestCatalog
from pricewatch.config.settings import Settings
from pricewatch.errors import CatalogError, DuplicateSubscriptionError
from pricewatch.models.subscription import TrackedSubscription
from pricewatch.notifications.base_dispatcher import NotificationDispatcher
from pricewatch.notifications.discord_dispatcher import (
    DiscordWebhookDispatcher,
)
from pricewatch.notifications.log_dispatcher import LogDispatcher
from pricewatch.services.price_update_orchestrator import (
    CycleReport,
    PriceUpdateOrchestrator,
)
from pricewatch.services.scheduler import CycleScheduler
from pricewatch.storage.database import Database
from pricewatch.storage.price_history_ledger import (
    PriceHistoryLedger,
    since_for_period,
)
from pricewatch.storage.product_store import ProductStore
from pricewatch.storage.tracking_store import TrackingStore

logger = logging.getLogger("pricewatch.cli")

# Stderr console for status messages so stdout stays clean for tables
_err = Console(stderr=True)


def build_dispatcher() -> NotificationDispatcher:
    """Pick the Discord transport when configured, else log alerts."""
    if Settings.DISCORD_WEBHOOK_URL:
        return DiscordWebhookDispatcher()
    return LogDispatcher()


def build_orchestrator(db: Database) -> PriceUpdateOrchestrator:
    """Wire the production catalog and dispatcher around *db*."""
    return PriceUpdateOrchestrator(
        db=db,
        catalog=RainforestCatalog(),
        dispatcher=build_dispatcher(),
    )


def print_report(report: CycleReport) -> None:
    """Render a cycle report as a Rich table."""
    if report.aborted:
        _err.print(
            f"[red]Cycle aborted: {report.fatal_error}[/red]"
        )
        return

    summary = Table(
        title="Price Update Cycle",
        show_lines=True,
        title_style="bold cyan",
    )
    summary.add_column("Updated", justify="right", style="green")
    summary.add_column("Skipped", justify="right")
    summary.add_column("Failed", justify="right", style="red")
    summary.add_column("Alerts sent", justify="right")
    summary.add_column("Alerts failed", justify="right")
    summary.add_row(
        str(report.updated),
        str(report.skipped),
        str(report.failed),
        str(report.notifications_sent),
        str(report.notifications_failed),
    )
    Console().print(summary)

    if report.errors:
        errors = Table(title="Failures", title_style="bold red")
        errors.add_column("Product", style="dim")
        errors.add_column("ASIN")
        errors.add_column("Kind", style="magenta")
        errors.add_column("Reason", overflow="fold")
        for e in report.errors:
            errors.add_row(
                str(e.product_id), e.asin or "-", e.kind, e.reason,
            )
        Console().print(errors)

    if report.cancelled:
        _err.print("[yellow]Cycle was cancelled before finishing.[/yellow]")


async def run_once() -> int:
    """Run a single monitoring cycle now (manual trigger)."""
    db = Database()
    try:
        orchestrator = build_orchestrator(db)
        _err.print("[bold]Running price update cycle...[/bold]")
        report = await orchestrator.run_cycle()
    finally:
        db.close()
    print_report(report)
    return 1 if report.aborted else 0


async def run_scheduler(schedule: float | str | None = None) -> int:
    """Run cycles on *schedule* until interrupted."""
    expr: float | str = schedule if schedule is not None else Settings.SCHEDULE
    db = Database()
    orchestrator = build_orchestrator(db)
    scheduler = CycleScheduler()
    cancel_event = asyncio.Event()

    async def cycle() -> None:
        report = await orchestrator.run_cycle(cancel_event)
        if report.aborted:
            logger.error("Scheduled cycle aborted: %s", report.fatal_error)

    _err.print(f"[bold]Scheduler running[/bold] [dim]schedule={expr}[/dim]")
    scheduler.start(expr, cycle)
    try:
        await scheduler.join()
    finally:
        cancel_event.set()
        scheduler.stop()
        try:
            await scheduler.wait_idle()
        finally:
            db.close()
        logger.info("Scheduler shut down")
    return 0


def show_history(asin: str, period: str = "all") -> int:
    """Print the price history and trend summary of a product."""
    try:
        since = since_for_period(period)
    except ValueError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1

    db = Database()
    try:
        product = ProductStore(db).get_by_asin(asin)
        if product is None or product.id is None:
            _err.print(f"[yellow]Unknown product: {asin}[/yellow]")
            return 1
        ledger = PriceHistoryLedger(db)
        entries = ledger.history(product.id, since)
        summary = ledger.summary(product.id)
    finally:
        db.close()

    table = Table(
        title=f"{product.title or asin} ({period})",
        show_lines=False,
        title_style="bold cyan",
    )
    table.add_column("Observed (UTC)", style="dim")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Discount", justify="right")
    table.add_column("Lowest", justify="center")
    for e in entries:
        table.add_row(
            e.observed_at.strftime("%Y-%m-%d %H:%M"),
            f"{e.currency} {e.price:,.2f}",
            f"{e.discount_percent}%",
            "★" if e.is_lowest_price else "",
        )
    Console().print(table)

    if summary:
        _err.print(
            f"[dim]min {summary['min']} · max {summary['max']} · "
            f"avg {summary['avg']} · latest {summary['latest']} · "
            f"{summary['count']} observations[/dim]"
        )
    return 0


async def track_product(
    asin: str,
    user_ref: str,
    target_price: float | None = None,
    threshold: float | None = None,
    notes: str = "",
) -> int:
    """Subscribe *user_ref* to *asin*, fetching the product if new."""
    db = Database()
    try:
        orchestrator = build_orchestrator(db)
        try:
            product = await orchestrator.register_product(asin)
        except CatalogError as exc:
            _err.print(f"[red]Cannot track {asin}: {exc}[/red]")
            return 1
        assert product.id is not None
        try:
            orchestrator.tracking.add_subscription(TrackedSubscription(
                user_ref=user_ref,
                product_id=product.id,
                target_price=target_price,
                alert_threshold_percent=(
                    threshold
                    if threshold is not None
                    else Settings.DEFAULT_ALERT_THRESHOLD
                ),
                notes=notes,
            ))
        except DuplicateSubscriptionError:
            _err.print(
                f"[yellow]{user_ref} already tracks {asin}[/yellow]"
            )
            return 1
    finally:
        db.close()

    _err.print(
        f"[green]✓ {user_ref} now tracks {product.title or asin} "
        f"at {product.currency} {product.current_price:,.2f}[/green]"
    )
    return 0


def untrack_product(asin: str, user_ref: str) -> int:
    """Remove a user's subscription to *asin*."""
    db = Database()
    try:
        product = ProductStore(db).get_by_asin(asin)
        removed = (
            product is not None
            and product.id is not None
            and TrackingStore(db).remove_subscription(user_ref, product.id)
        )
    finally:
        db.close()
    if not removed:
        _err.print(f"[yellow]{user_ref} does not track {asin}[/yellow]")
        return 1
    _err.print(f"[green]✓ {user_ref} stopped tracking {asin}[/green]")
    return 0


def update_tracking(
    asin: str,
    user_ref: str,
    target_price: float | None = None,
    clear_target: bool = False,
    threshold: float | None = None,
    enabled: bool | None = None,
    notes: str | None = None,
) -> int:
    """Change a user's alert settings for *asin*.

    Options left at ``None`` keep their stored value.
    """
    changes: dict[str, Any] = {}
    if clear_target:
        changes["target_price"] = None
    elif target_price is not None:
        changes["target_price"] = target_price
    if threshold is not None:
        changes["alert_threshold_percent"] = threshold
    if enabled is not None:
        changes["alert_enabled"] = enabled
    if notes is not None:
        changes["notes"] = notes

    db = Database()
    try:
        product = ProductStore(db).get_by_asin(asin)
        updated = None
        if product is not None and product.id is not None:
            updated = TrackingStore(db).update_subscription(
                user_ref, product.id, **changes,
            )
    finally:
        db.close()
    if updated is None:
        _err.print(f"[yellow]{user_ref} does not track {asin}[/yellow]")
        return 1
    state = "on" if updated.alert_enabled else "off"
    _err.print(
        f"[green]✓ {user_ref} / {asin}: alerts {state}, "
        f"threshold {updated.alert_threshold_percent:g}%, "
        f"target {_money(updated.target_price)}[/green]"
    )
    return 0


def list_tracked(user_ref: str) -> int:
    """Print every product *user_ref* tracks with its alert settings."""
    db = Database()
    try:
        products = ProductStore(db)
        rows = [
            (sub, products.get(sub.product_id))
            for sub in TrackingStore(db).subscriptions_of_user(user_ref)
        ]
    finally:
        db.close()
    if not rows:
        _err.print(f"[yellow]{user_ref} tracks no products[/yellow]")
        return 0

    table = Table(title=f"Tracked by {user_ref}", title_style="bold cyan")
    table.add_column("ASIN", style="dim")
    table.add_column("Product", overflow="fold")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Target", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Alerts", justify="center")
    table.add_column("Notes", overflow="fold")
    for sub, product in rows:
        table.add_row(
            product.asin if product else "-",
            product.title if product else "-",
            (
                f"{product.currency} {product.current_price:,.2f}"
                if product
                else "-"
            ),
            _money(sub.target_price),
            f"{sub.alert_threshold_percent:g}%",
            "on" if sub.alert_enabled else "off",
            sub.notes,
        )
    Console().print(table)
    return 0


def list_products() -> int:
    """Print every stored product with its latest price and discount."""
    db = Database()
    try:
        products = ProductStore(db).list_all()
    finally:
        db.close()
    if not products:
        _err.print("[yellow]No products stored yet[/yellow]")
        return 0

    table = Table(title="Products", title_style="bold cyan")
    table.add_column("ASIN", style="dim")
    table.add_column("Product", overflow="fold")
    table.add_column("Price", justify="right", style="green")
    table.add_column("List", justify="right")
    table.add_column("Discount", justify="right")
    table.add_column("Updated (UTC)", style="dim")
    for p in products:
        table.add_row(
            p.asin,
            p.title,
            f"{p.currency} {p.current_price:,.2f}",
            f"{p.currency} {p.original_price:,.2f}",
            f"{p.discount_percent}%",
            (
                p.last_updated_at.strftime("%Y-%m-%d %H:%M")
                if p.last_updated_at
                else "-"
            ),
        )
    Console().print(table)
    return 0


def _money(value: float | None) -> str:
    return "-" if value is None else f"{value:,.2f}"
