"""
Beam Monitor Entry Point
========================

Startup orchestration: settings, Modbus session, peripheral worker and
operator display (Tk) or a headless status loop.

Exit status is a FailureCode value.

Date: October 2026
"""

import argparse
import logging
import signal
import sys
import time
from typing import List, Optional

from .config import Settings, load_settings
from .core import HealthTracker, PeripheralWorker, RegisterStore
from .display import DisplayBridge
from .errors import FailureCode, ModbusSessionError, SettingsError
from .modbus import ModbusRegisterMap, ModbusRtuMaster

logger = logging.getLogger(__name__)

HEADLESS_STATUS_INTERVAL_SEC = 5.0


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Beam current cup monitor")
    parser.add_argument(
        "--config", type=str, default=None, help="Settings file (default: next to app)"
    )
    parser.add_argument(
        "--port", type=str, default=None, help="Serial port; overrides the settings file, whose port line becomes optional"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--no-gui", action="store_true", help="Run without operator window"
    )
    return parser


def load(args) -> Settings:
    """Load and validate settings (raises SettingsError)."""
    settings = load_settings(args.config, port_override=args.port)

    try:
        settings.validate()
    except ValueError as e:
        raise SettingsError(str(e), FailureCode.ERROR_SETTINGS_PORT_NAME) from e

    return settings


def run_headless(worker: PeripheralWorker, bridge: DisplayBridge, health: HealthTracker):
    """Pump the bridge and log link status until a signal arrives."""
    stop_requested = False

    def signal_handler(sig, frame):
        nonlocal stop_requested
        logger.info("Shutdown signal received. Stopping peripherals...")
        stop_requested = True

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    last_status = time.monotonic()
    while not stop_requested and worker.is_running:
        bridge.pump()
        now = time.monotonic()
        if now - last_status >= HEADLESS_STATUS_INTERVAL_SEC:
            state = "OK" if health.is_healthy() else "DEGRADED"
            logger.info(
                f"Link {health.quality_text()} [{state}], "
                f"{worker.tick_count} ticks, {bridge.refresh_count} refreshes"
            )
            last_status = now
        time.sleep(0.02)


def run_gui(settings, store, health, bridge, worker):
    # Imported here so headless hosts do not need Tk
    import tkinter as tk

    from .panel import OperatorPanel

    root = tk.Tk()
    OperatorPanel(root, store, health, bridge, worker, settings.calibrations)
    bridge.attach(root)
    root.mainloop()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        if e.code:
            return int(FailureCode.ERROR_COMMAND_SYNTAX)
        return int(FailureCode.NO_FAILURE)

    configure_logging(args.verbose)

    logger.info("=" * 70)
    logger.info("BEAM MONITOR")
    logger.info("=" * 70)

    # ========================================================================
    # PHASE 1: Settings
    # ========================================================================
    try:
        settings = load(args)
    except SettingsError as e:
        logger.error(f"Settings error: {e}")
        return int(e.code)

    logger.info(f"✓ Serial port: {settings.serial.port}")

    # ========================================================================
    # PHASE 2: Shared state and Modbus session
    # ========================================================================
    store = RegisterStore(ModbusRegisterMap(settings.layout))
    health = HealthTracker(settings.poller)
    bridge = DisplayBridge()
    worker = PeripheralWorker(
        ModbusRtuMaster(settings.serial),
        store,
        health=health,
        config=settings.poller,
        on_refresh=bridge.notify,
    )

    try:
        worker.start()
    except ModbusSessionError as e:
        logger.error(f"Modbus startup failed: {e}")
        return int(e.code)

    # ========================================================================
    # PHASE 3: Display
    # ========================================================================
    try:
        if args.no_gui:
            run_headless(worker, bridge, health)
        else:
            run_gui(settings, store, health, bridge, worker)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        if not worker.stop():
            logger.warning("Peripheral worker did not close in time")

    logger.info("Beam monitor stopped")
    return int(FailureCode.NO_FAILURE)


if __name__ == "__main__":
    sys.exit(main())
