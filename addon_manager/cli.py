"""Command line entry point: start an installed add-on, migrating it first if needed."""

import argparse
import asyncio
import os
import sys
from pathlib import Path

import structlog

from .constants import ENV_ADDON_MANAGER_CONFIG
from .core.config_loader import load_config
from .core.exceptions import AddonManagerError
from .core.logging_config import setup_logging
from .core.settings import AddonManagerSettings
from .models.manifest import Manifest
from .services import AddonStarter


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Add-on manager")
    parser.add_argument(
        "--config",
        default=os.getenv(ENV_ADDON_MANAGER_CONFIG),
        help="YAML configuration file path",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides LOG_LEVEL)",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and exit"
    )
    subparsers = parser.add_subparsers(dest="command")

    start = subparsers.add_parser("start", help="Start an add-on, migrating its stack if needed")
    start.add_argument("name", help="Add-on stack name")
    start.add_argument("manifest", type=Path, help="Path to the add-on manifest.json")

    args = parser.parse_args(argv)
    if not args.validate_config and args.command is None:
        parser.error("a command is required unless --validate-config is given")
    return args


async def start_addon(settings: AddonManagerSettings, name: str, manifest_path: Path) -> None:
    manifest = Manifest.from_json(manifest_path.read_bytes())
    await AddonStarter.from_settings(settings).start_addon(name, manifest)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        settings = load_config(args.config)
    except AddonManagerError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    log_level = args.log_level or settings.log_level
    setup_logging(settings.log_dir, log_level)
    logger = structlog.get_logger().bind(component="cli")

    if args.validate_config:
        logger.info("Configuration is valid", state_directory=str(settings.state_directory))
        return 0

    try:
        asyncio.run(start_addon(settings, args.name, args.manifest))
    except (AddonManagerError, OSError, ValueError) as e:
        logger.error("Failed to start add-on", addon=args.name, error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
