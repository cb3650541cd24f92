import argparse
import asyncio
import signal
import sys
from pathlib import Path

import aiohttp
from pydantic import ValidationError
from telegram import Bot

import services.error  # installs global uncaught-exception hook
import services.logger as log
import services.util as u
import services.config_io as config_io
from services.bridge import Bridge
from services.classifier import AttachmentClassifier
from services.config_schema import AppConfig
from services.dispatch import DispatchCoordinator
from services.fetch import FetchScheduler
from services.media import MediaArchive
from services.mime import DEFAULT_MIME_TABLE
from services.routes import RouteTable

from drivers.discord import DiscordWebhookSender
from drivers.telegram import TelegramDriver, TelegramFileFetcher

l = log.get_logger()


def cmd_convert(src: str, dst: str) -> None:
    src_path = Path(src)
    dst_path = Path(dst)

    if not src_path.is_file():
        print(f"Error: source file not found: {src_path}", file=sys.stderr)
        sys.exit(1)

    try:
        data = config_io.load_config(src_path)
    except Exception as e:
        print(f"Error reading {src_path}: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        config_io.save_config(data, dst_path)
    except Exception as e:
        print(f"Error writing {dst_path}: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Converted {src_path} → {dst_path}")


def _load() -> tuple[Path, dict, AppConfig] | None:
    """Find, read and validate the config; log and return None on failure."""
    config_path = config_io.find_config(Path(u.get_data_path()))
    if config_path is None:
        l.critical(f"No config file found in: {u.get_data_path()} (tried config.json / .yaml / .toml)")
        return None

    l.info(f"Loading config from: {config_path}")
    try:
        raw: dict = config_io.load_config(config_path)
        config = AppConfig.from_raw(raw)
    except ValidationError as exc:
        l.critical(f"Config error in {config_path}:\n{exc}")
        return None
    except Exception as exc:
        l.critical(f"Failed to read {config_path}: {exc}")
        return None
    return config_path, raw, config


def cmd_check() -> None:
    loaded = _load()
    if loaded is None:
        sys.exit(1)
    config_path, _, config = loaded
    routes = RouteTable.from_config(config)
    print(f"{config_path}: OK, {len(routes)} channel route(s)")
    for channel_id in routes.channels():
        names = ", ".join(str(ep) for ep in routes.lookup(channel_id))
        print(f"  {channel_id} → {names}")


def _install_reload(config_path: Path, routes: RouteTable) -> None:
    """Reload the route table from *config_path* on SIGHUP."""

    def _reload() -> None:
        l.info(f"SIGHUP received, reloading routes from {config_path}")
        try:
            config = AppConfig.from_raw(config_io.load_config(config_path))
            routes.replace(config.build_routes())
        except Exception as e:
            l.error(f"Route reload failed, keeping the current routes: {e}")

    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGHUP, _reload)
    except (NotImplementedError, AttributeError):
        # No SIGHUP / signal handlers on this platform (e.g. Windows)
        l.debug("Route reload on SIGHUP not available on this platform")


async def main():
    l.info("tgmirror starting…")

    loaded = _load()
    if loaded is None:
        return
    config_path, raw, config = loaded

    log_file = log.enable_file_log(config.log_dir)
    l.debug(f"Logging to {log_file}")

    routes = RouteTable.from_config(config)
    if not routes:
        l.error("No channel routes configured, nothing to do, exiting.")
        return

    async with aiohttp.ClientSession() as session:
        bot = Bot(config.telegram.bot_token)
        scheduler = FetchScheduler(
            TelegramFileFetcher(bot, session),
            max_concurrent=config.max_concurrent_fetches or None,
        )
        dispatcher = DispatchCoordinator(routes, DiscordWebhookSender(session))
        archive = MediaArchive(Path(config.save_media_dir)) if config.save_media_dir else None
        if archive is not None:
            l.info(f"Saving mirrored media to: {archive.directory}")

        bridge = Bridge(routes, AttachmentClassifier(DEFAULT_MIME_TABLE), scheduler, dispatcher, archive)
        bridge.load_sensitive_values({**raw, "telegram": {"bot_token": config.telegram.bot_token}})

        _install_reload(config_path, routes)

        driver = TelegramDriver("telegram", bot, bridge)
        try:
            with services.error.catch_and_log("telegram driver"):
                await driver.start()
        except asyncio.CancelledError:
            l.info("tgmirror shutting down…")
            raise
        finally:
            await scheduler.cancel_all()
            l.info("tgmirror stopped.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(prog="tgmirror", description="Telegram → Discord channel mirror")
    subparsers = parser.add_subparsers(dest="command")

    conv = subparsers.add_parser("convert", help="Convert a config file between formats (json/yaml/toml)")
    conv.add_argument("src", help="Source config file (e.g. config.json)")
    conv.add_argument("dst", help="Destination config file (e.g. config.yaml)")

    subparsers.add_parser("check", help="Validate the config file and print a route summary")

    args = parser.parse_args()

    if args.command == "convert":
        cmd_convert(args.src, args.dst)
        sys.exit(0)
    if args.command == "check":
        cmd_check()
        sys.exit(0)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
