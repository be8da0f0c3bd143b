"""
RPL Stake Watcher - Main Entry Point

Checks the RPL stake of each configured Rocket Pool validator on a fixed
interval and posts a Discord alert when a node drops below its minimum.

Usage:
    python -m rpl_stake_watcher [--once] [--log-level LEVEL] [--env-file PATH]
    rpl-stake-watcher --once        # Run a single check cycle and exit

Configuration:
    The watcher reads configuration from:
    1. A .env file in the working directory (existing variables win)
    2. Environment variables
    3. Command line arguments

Environment Variables:
    VALIDATOR_IDS                 Comma separated validator indices or pubkeys (required)
    BEACONCHA_API_KEY             beaconcha.in API key (required)
    DISCORD_WEBHOOK_URL           Discord webhook for alerts (required)
    CHECK_INTERVAL                Seconds between check cycles (required)
    NOTIFICATION_COOLDOWN_HOURS   Hours between alerts for one validator (default: 24)
    BEACONCHA_API_URL             API root (default: https://beaconcha.in)
    BEACONCHA_RATE_LIMIT          Max API requests per second (default: 10)
    HTTP_TIMEOUT_SECONDS          Timeout for API and webhook calls (default: 30)
    CHECK_ON_STARTUP              Run the first cycle immediately (default: true)
    LOG_LEVEL                     Logging level (DEBUG/INFO/WARNING/ERROR)

Set LOG_LEVEL=DEBUG to log every HTTP request and response.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

# Configure logging before imports
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

from rpl_stake_watcher.core import (  # noqa: E402
    CheckResult,
    CheckScheduler,
    SchedulerConfig,
    StakeChecker,
)
from rpl_stake_watcher.errors import ConfigError  # noqa: E402
from rpl_stake_watcher.ingestion import BeaconchainClient, create_session  # noqa: E402
from rpl_stake_watcher.monitoring import (  # noqa: E402
    DiscordNotifier,
    NotificationThrottle,
)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def parse_validator_ids(raw: str) -> List[str]:
    """Split VALIDATOR_IDS, dropping blanks and duplicates but keeping order."""
    ids: List[str] = []
    for part in raw.split(","):
        validator_id = part.strip()
        if validator_id and validator_id not in ids:
            ids.append(validator_id)
    return ids


def mask_secret(value: str, visible: int = 4) -> str:
    """Show only the last few characters of a credential."""
    if not value:
        return "<not set>"
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


@dataclass
class WatcherConfig:
    """Complete watcher configuration."""

    # Monitored validators
    validator_ids: List[str] = field(default_factory=list)

    # beaconcha.in
    api_key: str = ""
    api_base_url: str = BeaconchainClient.DEFAULT_BASE_URL
    api_rate_limit: float = 10.0

    # Discord
    discord_webhook_url: str = ""

    # Scheduling
    check_interval_seconds: Optional[float] = None
    check_on_startup: bool = True
    notification_cooldown_hours: float = 24.0

    http_timeout_seconds: float = 30.0

    @property
    def notification_cooldown_seconds(self) -> float:
        return self.notification_cooldown_hours * 3600

    @classmethod
    def from_env(cls) -> "WatcherConfig":
        """
        Load configuration from environment variables.

        Raises:
            ConfigError: If a numeric variable cannot be parsed
        """
        try:
            interval = os.environ.get("CHECK_INTERVAL", "").strip()
            return cls(
                validator_ids=parse_validator_ids(os.environ.get("VALIDATOR_IDS", "")),
                api_key=os.environ.get("BEACONCHA_API_KEY", "").strip(),
                api_base_url=os.environ.get(
                    "BEACONCHA_API_URL", BeaconchainClient.DEFAULT_BASE_URL
                ).strip(),
                api_rate_limit=float(os.environ.get("BEACONCHA_RATE_LIMIT", "10")),
                discord_webhook_url=os.environ.get("DISCORD_WEBHOOK_URL", "").strip(),
                check_interval_seconds=float(interval) if interval else None,
                check_on_startup=_parse_bool(os.environ.get("CHECK_ON_STARTUP", "true")),
                notification_cooldown_hours=float(
                    os.environ.get("NOTIFICATION_COOLDOWN_HOURS", "24")
                ),
                http_timeout_seconds=float(os.environ.get("HTTP_TIMEOUT_SECONDS", "30")),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid numeric configuration value: {e}") from e

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty when valid)."""
        problems = []
        if not self.validator_ids:
            problems.append("VALIDATOR_IDS environment variable is required")
        if not self.api_key:
            problems.append("BEACONCHA_API_KEY environment variable is required")
        if not self.discord_webhook_url:
            problems.append("DISCORD_WEBHOOK_URL environment variable is required")
        if self.check_interval_seconds is None:
            problems.append("CHECK_INTERVAL environment variable is required")
        elif self.check_interval_seconds <= 0:
            problems.append("CHECK_INTERVAL must be greater than 0")
        if self.notification_cooldown_hours < 0:
            problems.append("NOTIFICATION_COOLDOWN_HOURS must not be negative")
        if self.http_timeout_seconds <= 0:
            problems.append("HTTP_TIMEOUT_SECONDS must be greater than 0")
        return problems


class StakeWatcher:
    """
    Main watcher orchestrator.

    Owns the HTTP session and wires the components:
    - BeaconchainClient (stake data)
    - DiscordNotifier + NotificationThrottle (alerts)
    - StakeChecker + CheckScheduler (check cycles)
    """

    def __init__(self, config: WatcherConfig):
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized on start)
        self._session = None
        self._client: Optional[BeaconchainClient] = None
        self._notifier: Optional[DiscordNotifier] = None
        self._throttle: Optional[NotificationThrottle] = None
        self._checker: Optional[StakeChecker] = None
        self._scheduler: Optional[CheckScheduler] = None

    @property
    def scheduler(self) -> Optional[CheckScheduler]:
        return self._scheduler

    def _init_components(self) -> None:
        """Create the HTTP session and every component that uses it."""
        self._session = create_session(self.config.http_timeout_seconds)
        self._client = BeaconchainClient(
            api_key=self.config.api_key,
            base_url=self.config.api_base_url,
            session=self._session,
            rate_limit=self.config.api_rate_limit,
            timeout=self.config.http_timeout_seconds,
        )
        self._notifier = DiscordNotifier(
            webhook_url=self.config.discord_webhook_url,
            session=self._session,
            timeout=self.config.http_timeout_seconds,
        )
        self._throttle = NotificationThrottle(
            sink=self._notifier,
            cooldown_seconds=self.config.notification_cooldown_seconds,
        )
        self._checker = StakeChecker(provider=self._client, throttle=self._throttle)
        self._scheduler = CheckScheduler(
            checker=self._checker,
            validator_ids=self.config.validator_ids,
            config=SchedulerConfig(
                interval_seconds=self.config.check_interval_seconds,
                check_on_start=self.config.check_on_startup,
            ),
        )

    def _log_banner(self) -> None:
        logger.info("=" * 60)
        logger.info("Starting RPL Stake Watcher")
        logger.info("=" * 60)
        logger.info(f"Validator IDs: {','.join(self.config.validator_ids)}")
        logger.info(f"API key: {mask_secret(self.config.api_key)}")
        logger.info(f"Discord webhook URL: {mask_secret(self.config.discord_webhook_url, 8)}")
        logger.info(f"Checking stake every {self.config.check_interval_seconds:g} seconds")
        logger.info(
            f"Notification cooldown: {self.config.notification_cooldown_hours:g} hours"
        )
        logger.info("=" * 60)

    async def run_once(self) -> List[CheckResult]:
        """Run a single check cycle and shut down."""
        self._log_banner()
        self._init_components()
        try:
            return await self._scheduler.run_once()
        finally:
            await self._close()

    async def start(self) -> None:
        """Start checking and block until shutdown is requested."""
        self._log_banner()
        self._running = True
        self._shutdown_event.clear()

        # Setup signal handlers FIRST to catch early signals
        self._setup_signal_handlers()

        try:
            self._init_components()
            await self._scheduler.start()

            logger.info("Watcher started successfully")
            logger.info("Press Ctrl+C to stop")

            await self._shutdown_event.wait()

        except Exception as e:
            logger.exception(f"Fatal error: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the watcher gracefully."""
        if not self._running:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        if self._scheduler:
            try:
                await self._scheduler.stop()
            except Exception as e:
                logger.warning(f"Error stopping scheduler: {e}")

        self._log_final_stats()

        await self._close()
        logger.info("Shutdown complete")

    def request_shutdown(self, reason: str = "manual") -> None:
        """Request a graceful shutdown. Safe to call from a signal handler."""
        if not self._running:
            return
        logger.warning(f"Shutdown requested: {reason}")
        self._shutdown_event.set()

    def _log_final_stats(self) -> None:
        if self._scheduler:
            stats = self._scheduler.stats
            logger.info(
                f"Final stats: ticks={stats.ticks}, checks={stats.checks}, "
                f"under_minimum={stats.under_minimum}, fetch_failures={stats.fetch_failures}"
            )
        if self._throttle:
            sent = self._throttle.state.stats()
            logger.info(
                f"Notifications: validators_notified={sent['validators_notified']}, "
                f"total_sent={sent['total_sent']}"
            )

    async def _close(self) -> None:
        if self._session:
            try:
                await self._session.close()
            except Exception as e:
                logger.warning(f"Error closing HTTP session: {e}")
            self._session = None

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            self.request_shutdown(f"received signal {sig.name}")

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line.startswith("export "):
                    line = line[len("export "):]
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="rpl-stake-watcher",
        description="Rocket Pool RPL stake watcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single check cycle and exit",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Path to a .env file (default: .env)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    try:
        config = WatcherConfig.from_env()
    except ConfigError as e:
        logger.error(str(e))
        return 1

    problems = config.validate()
    if problems:
        for problem in problems:
            logger.error(problem)
        logger.error("Missing required environment variable(s). See README for setup.")
        return 1

    watcher = StakeWatcher(config)

    try:
        if args.once:
            await watcher.run_once()
        else:
            await watcher.start()
        return 0
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Load .env file
    load_env_file(args.env_file)

    # Override log level if specified
    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
