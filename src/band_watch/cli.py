from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from band_watch.config.bands import BandWatchConfig, load_band_watch_config
from band_watch.logging_utils import configure_logging
from band_watch.market import MarketDataError
from band_watch.runtime import (
    RuntimeOptions,
    build_client,
    build_monitor,
    build_runtime_notifier,
    resolve_options,
)
from band_watch.settings import NotificationChannel, Settings

app = typer.Typer(no_args_is_help=True, add_completion=False)
logger = logging.getLogger("band_watch")


def _load_config(config: Optional[Path]) -> Optional[BandWatchConfig]:
    if config is None:
        return None
    if not config.exists():
        raise typer.BadParameter(f"config file not found: {config}")
    try:
        return load_band_watch_config(config)
    except Exception as e:
        raise typer.BadParameter(f"invalid config: {e}") from e


def _options(
    settings: Settings,
    config: Optional[Path],
    channel: Optional[str],
) -> RuntimeOptions:
    if channel is not None and channel not in ("telegram", "log"):
        raise typer.BadParameter("channel must be telegram|log", param_hint="--channel")
    resolved: Optional[NotificationChannel] = channel  # type: ignore[assignment]
    return resolve_options(settings, _load_config(config), channel=resolved)


@app.command()
def config_init(
    path: Path = typer.Option(Path(".env"), help="Path to write a starter .env file."),
    overwrite: bool = typer.Option(False, "--overwrite", help="Overwrite if exists."),
) -> None:
    """
    Create a starter `.env` file (copy from `.env.example`).
    """
    example_path = Path(".env.example")
    if not example_path.exists():
        raise typer.Exit(code=2)

    if path.exists() and not overwrite:
        raise typer.Exit(code=1)

    path.write_text(example_path.read_text(encoding="utf-8"), encoding="utf-8")
    typer.echo(f"Wrote {path}")


@app.command()
def show_config() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    redacted = settings.model_dump()
    redacted["telegram_bot_token"] = "***" if redacted["telegram_bot_token"] else ""
    redacted["telegram_configured"] = settings.telegram_configured()
    logger.info("loaded_config", extra={"coin": settings.coin_id})
    typer.echo(redacted)


@app.command()
def health() -> None:
    """
    Ping CoinGecko.
    """
    settings = Settings()
    configure_logging(settings.log_level)
    options = resolve_options(settings)

    async def _run() -> None:
        client = build_client(settings, options)
        try:
            data = await client.ping()
            typer.echo({"ok": True, "coin": options.coin_id, "ping": data})
        finally:
            await client.aclose()

    try:
        asyncio.run(_run())
    except MarketDataError as e:
        typer.echo({"ok": False, "error": str(e)}, err=True)
        raise typer.Exit(code=1) from e


@app.command()
def check(
    config: Optional[Path] = typer.Option(None, help="Band watch config file (TOML)."),
) -> None:
    """
    Fetch history and the current price once and print the bands.

    No notification is sent and no cooldown applies.
    """
    settings = Settings()
    configure_logging(settings.log_level)
    options = _options(settings, config, None)

    async def _run() -> dict[str, object]:
        client = build_client(settings, options)
        notifier = build_runtime_notifier(settings, options)
        monitor = build_monitor(options=options, client=client, notifier=notifier)
        try:
            await monitor.start()
            touched = await monitor.check_once()
            return {**monitor.snapshot(), "touched": touched}
        finally:
            await notifier.aclose()
            await client.aclose()

    try:
        typer.echo(asyncio.run(_run()))
    except MarketDataError as e:
        typer.echo({"ok": False, "error": str(e)}, err=True)
        raise typer.Exit(code=1) from e


@app.command()
def notify_test(
    channel: Optional[str] = typer.Option(None, help="Override: telegram|log"),
) -> None:
    """
    Send a test notification through the configured channel.
    """
    settings = Settings()
    configure_logging(settings.log_level)
    options = _options(settings, None, channel)

    async def _run() -> None:
        client = build_client(settings, options)
        notifier = build_runtime_notifier(settings, options)
        monitor = build_monitor(options=options, client=client, notifier=notifier)
        try:
            sent = await monitor.send_test_notification()
            typer.echo(
                {
                    "ok": sent,
                    "channel": notifier.channel,
                    "permission": notifier.permission(),
                }
            )
        finally:
            await notifier.aclose()
            await client.aclose()

    asyncio.run(_run())


@app.command()
def run(
    config: Optional[Path] = typer.Option(None, help="Band watch config file (TOML)."),
    channel: Optional[str] = typer.Option(None, help="Override: telegram|log"),
) -> None:
    """
    Seed the price history, then poll and alert on band touches until stopped.
    """
    settings = Settings()
    configure_logging(settings.log_level)
    options = _options(settings, config, channel)

    async def _run() -> None:
        client = build_client(settings, options)
        notifier = build_runtime_notifier(settings, options)
        monitor = build_monitor(options=options, client=client, notifier=notifier)
        if not notifier.enabled():
            logger.warning(
                "notifications_disabled",
                extra={"coin": options.coin_id, "channel": notifier.channel},
            )
        try:
            await monitor.run()
        finally:
            await notifier.aclose()
            await client.aclose()

    try:
        asyncio.run(_run())
    except MarketDataError as e:
        typer.echo(f"Failed to fetch initial price data: {e}", err=True)
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        logger.info("monitor_interrupted", extra={"coin": options.coin_id})


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Override: bind host."),
    port: Optional[int] = typer.Option(None, help="Override: bind port."),
) -> None:
    """
    Run the JSON API (status, manual poll, test notification) with the monitor.
    """
    import uvicorn

    from band_watch.web import create_app

    settings = Settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(),
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_config=None,
    )


def main() -> None:
    app()
