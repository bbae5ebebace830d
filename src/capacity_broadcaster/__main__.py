"""Entry point for the capacity broadcaster."""

import argparse
import logging
import signal
import sys
from types import FrameType
from typing import Any

from capacity_broadcaster import __version__
from capacity_broadcaster.config import BroadcasterConfig, LogLevel
from capacity_broadcaster.utils.errors import StartupError


def setup_logging(level: LogLevel) -> None:
    """Configure logging for the broadcaster."""
    logging.basicConfig(
        level=level.value,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="capacity-broadcaster",
        description="Advertise spare cluster capacity to a peered cluster",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Identity options
    parser.add_argument(
        "--home-cluster-id",
        default=None,
        help="Identity of the home cluster",
    )
    parser.add_argument(
        "--peering-request",
        default=None,
        help="Name of the PeeringRequest of the foreign cluster",
    )
    parser.add_argument(
        "--service-account",
        default=None,
        help="Service account embedded in the kubeconfig sent to the foreign cluster",
    )

    # Debug options
    parser.add_argument(
        "--local-kubeconfig",
        default=None,
        help="Kubeconfig for the home cluster (debug only; in-cluster config otherwise)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> BroadcasterConfig:
    """Build config from args, falling back to environment/defaults."""
    config_kwargs: dict[str, Any] = {}

    if args.home_cluster_id:
        config_kwargs["home_cluster_id"] = args.home_cluster_id

    if args.peering_request:
        config_kwargs["peering_request_name"] = args.peering_request

    if args.service_account:
        config_kwargs["service_account_name"] = args.service_account

    if args.local_kubeconfig:
        config_kwargs["local_kubeconfig_path"] = args.local_kubeconfig

    if args.log_level:
        config_kwargs["log_level"] = LogLevel(args.log_level)

    return BroadcasterConfig(**config_kwargs)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = build_config(args)

    setup_logging(config.log_level)

    logger = logging.getLogger(__name__)
    logger.info(f"Starting capacity broadcaster v{__version__}")

    try:
        warnings = config.validate_startup_config()
        for warning in warnings:
            logger.warning(warning)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    from capacity_broadcaster.broadcaster import AdvertisementBroadcaster

    broadcaster = AdvertisementBroadcaster(config)

    def handle_signal(signum: int, frame: FrameType | None) -> None:
        logger.info(f"Received signal {signal.Signals(signum).name}, shutting down")
        broadcaster.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        broadcaster.run()
    except StartupError as e:
        logger.error(f"Unable to start broadcaster of cluster {config.home_cluster_id}: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
