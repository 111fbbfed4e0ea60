"""Service entry point: python main.py [--bootstrap] [--once]"""

import argparse
import signal
import sys
import threading

from src.key_lifecycle import KeyLifecycle, KeyLifecycleSettings
from src.logging_config import LogFormat, LoggingConfig, configure_logging, get_logger

logger = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Signing key lifecycle service - rotation and access provisioning"
    )
    parser.add_argument(
        "--bootstrap", action="store_true",
        help="Provision standard policies and AppRoles before starting",
    )
    parser.add_argument(
        "--once", action="store_true",
        help="Run a single rotation pass and exit",
    )
    parser.add_argument(
        "--console-logs", action="store_true",
        help="Human-readable log output instead of JSON",
    )
    args = parser.parse_args()

    configure_logging(LoggingConfig(
        format=LogFormat.CONSOLE if args.console_logs else LogFormat.JSON,
    ))
    config = KeyLifecycleSettings().to_config()

    with KeyLifecycle.from_config(config) as lifecycle:
        if not lifecycle.facade.is_healthy():
            logger.error("Secret store at %s is not healthy", config.store.base_url)
            return 1

        if args.bootstrap and not lifecycle.provisioner.setup_all():
            logger.warning("Bootstrap finished with failures; continuing")

        if args.once:
            result = lifecycle.scheduler.run_pass()
            return 0 if result.success else 1

        shutdown = threading.Event()
        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, lambda signum, frame: shutdown.set())

        lifecycle.scheduler.start()
        shutdown.wait()
        logger.info("Shutdown requested")
    return 0


if __name__ == "__main__":
    sys.exit(main())
