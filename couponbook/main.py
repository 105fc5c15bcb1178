from __future__ import annotations

import asyncio
import json
import sys
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import typer

from couponbook.config import get_settings
from couponbook.errors import CouponbookError
from couponbook.infrastructure.db_factory import Stores, store_session
from couponbook.service import available_coupons, redeem_coupon, send_coupon
from couponbook.utils.logging import configure_logging

app = typer.Typer(help="Send and redeem coupons between users.")

DatabaseOption = typer.Option(
    None,
    "--database",
    "-d",
    help="Database file (default from settings, ':memory:' for a throwaway database).",
)


def _run(action: Callable[[Stores], Awaitable[Any]], database: Optional[str], reset: bool = False) -> Any:
    """Run ``action`` inside a store session and turn store errors into exit code 1."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    async def _session() -> Any:
        async with store_session(database, reset=reset) as stores:
            return await action(stores)

    try:
        return asyncio.run(_session())
    except (CouponbookError, LookupError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.database_path} | env={settings.app_env} | "
        f"log={settings.log_level}{' (json)' if settings.log_json else ''} | "
        f"default_expiration_days={settings.coupon_default_expiration_days}"
    )


@app.command("init-db")
def init_db(
    reset: bool = typer.Option(False, "--reset", help="Drop existing tables and all their rows."),
    database: Optional[str] = DatabaseOption,
) -> None:
    """
    Create the user and coupon tables.
    """

    async def action(stores: Stores) -> str:
        return stores.db.filename

    filename = _run(action, database, reset=reset)
    typer.echo(f"{'Reset' if reset else 'Initialized'} schema in {filename}.")


@app.command("create-user")
def create_user(
    unique_id: str = typer.Argument(..., help="Externally verified identity token."),
    public_id: str = typer.Argument(..., help="Public display name."),
    database: Optional[str] = DatabaseOption,
) -> None:
    """
    Register a new user.
    """

    async def action(stores: Stores) -> dict:
        user = await stores.users.create_new_user(unique_id, public_id)
        return user.model_dump()

    _echo_json(_run(action, database))


@app.command()
def send(
    sender: str = typer.Option(..., "--from", help="Unique id of the sending user."),
    target: str = typer.Option(..., "--to", help="Public id of the receiving user."),
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    description: Optional[str] = typer.Option(None, "--description"),
    expires: Optional[datetime] = typer.Option(
        None,
        "--expires",
        formats=["%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"],
        help="Expiration date; defaults to the configured number of days from now.",
    ),
    database: Optional[str] = DatabaseOption,
) -> None:
    """
    Send a coupon from one user to another.
    """

    async def action(stores: Stores) -> dict:
        return dict(await send_coupon(stores, sender, target, title, description, expires))

    _echo_json(_run(action, database))


@app.command()
def redeem(
    coupon_id: int = typer.Argument(..., help="Id of the coupon to redeem."),
    database: Optional[str] = DatabaseOption,
) -> None:
    """
    Redeem an active coupon.
    """

    async def action(stores: Stores) -> dict:
        return dict(await redeem_coupon(stores, coupon_id))

    _echo_json(_run(action, database))


@app.command()
def available(
    public_id: str = typer.Argument(..., help="Public id of the receiving user."),
    database: Optional[str] = DatabaseOption,
) -> None:
    """
    List the active coupons waiting for a user.
    """

    async def action(stores: Stores) -> list:
        return [dict(coupon) for coupon in await available_coupons(stores, public_id)]

    _echo_json(_run(action, database))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
