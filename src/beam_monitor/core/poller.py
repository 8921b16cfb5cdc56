"""
Peripheral Worker (Polling State Machine)
=========================================

The single background thread that owns the Modbus RTU session.

One tick:
1. Advance the target time by the loop period (x multiplier while degraded)
2. Wait for it, running the channel monitor between short sleeps
3. Execute exactly one transaction:
   - a pending coil write if any cup has one (lowest cup first)
   - otherwise read coils / read input registers, alternating
4. Feed the outcome to the health tracker
5. After a successful input register read, wake the display

Transport errors are expected: they are logged and counted, never fatal.
Only a shutdown request stops the loop; the transport is then closed
exactly once.

Date: October 2026
License: MIT
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from ..config import PollerConfig
from ..errors import ModbusTransportError
from ..modbus.register_map import CoilOffset
from .health import HealthTracker
from .monitor import ChannelMonitor
from .store import RegisterStore

logger = logging.getLogger(__name__)


class PollerState(Enum):
    """Peripheral worker states."""

    OPENING = "opening"
    READING_INPUT_REGISTERS = "reading_input_registers"
    READING_COILS = "reading_coils"
    WRITING_COIL = "writing_coil"
    STOPPED = "stopped"


class PeripheralWorker:
    """
    Fixed-cadence Modbus polling thread.

    Args:
        transport: Object with open(), close(), read_input_registers(),
            read_coils() and write_single_coil() (normally ModbusRtuMaster)
        store: Shared register/coil store
        health: Link health tracker (created from config if omitted)
        config: Timing parameters
        on_refresh: Called from this thread after each register refresh;
            must only hand off to the display thread (DisplayBridge.notify)
        clock: Monotonic time source [s]
        sleep: Suspends for at most the given time [s]; defaults to a wait
            on the shutdown event so a stop request cuts the wait short
    """

    def __init__(
        self,
        transport,
        store: RegisterStore,
        health: Optional[HealthTracker] = None,
        config: Optional[PollerConfig] = None,
        on_refresh: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], object]] = None,
    ):
        self.config = config or PollerConfig()
        self.config.validate()

        self.transport = transport
        self.store = store
        self.register_map = store.register_map
        self.health = health or HealthTracker(self.config)
        self.monitor = ChannelMonitor(store, self.config.limit_switch_grace_sec, clock)
        self.on_refresh = on_refresh

        self._clock = clock
        self._shutdown_requested = threading.Event()
        self._sleep = sleep or self._shutdown_requested.wait

        self._closed = threading.Event()
        self._closed.set()
        self._transport_closed = False
        self._thread: Optional[threading.Thread] = None

        self.state = PollerState.OPENING
        self._last_read: Optional[PollerState] = None
        self._deadline: Optional[float] = None
        self.tick_count = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    def start(self):
        """
        Open the transport and launch the worker thread.

        Raises:
            ModbusSessionError: Session could not be opened (thread not started)
        """
        if self.is_running:
            logger.warning("Peripheral worker already running")
            return

        self.transport.open()

        self.state = PollerState.OPENING
        self._last_read = None
        self._deadline = None
        self._transport_closed = False
        self._shutdown_requested.clear()
        self._closed.clear()

        self._thread = threading.Thread(
            target=self._run, daemon=True, name="PeripheralWorker"
        )
        self._thread.start()
        logger.info(
            f"Peripheral worker started (period={self.config.loop_period_sec * 1000:.0f}ms)"
        )

    def request_shutdown(self):
        """Ask the worker to stop at the top of its next cycle."""
        self._shutdown_requested.set()

    def stop(
        self, timeout: Optional[float] = None, poll_interval: Optional[float] = None
    ) -> bool:
        """
        Request shutdown and wait a bounded time for the worker to close.

        Returns:
            True if the worker reported closed, False if the wait timed out
        """
        if self._closed.is_set():
            self._join()
            return True

        timeout = self.config.shutdown_timeout_sec if timeout is None else timeout
        poll_interval = (
            self.config.shutdown_poll_sec if poll_interval is None else poll_interval
        )

        self.request_shutdown()

        countdown = max(1, int(round(timeout / poll_interval)))
        loops = 0
        while not self._closed.wait(poll_interval):
            loops += 1
            if loops >= countdown:
                logger.warning("Problem encountered during peripherals closing")
                return False

        self._join()
        logger.info(f"Peripherals closed; delay loop ran {loops} times")
        return True

    def _join(self):
        if self._thread is not None:
            self._thread.join(timeout=self.config.shutdown_timeout_sec)
            if not self._thread.is_alive():
                self._thread = None

    def _run(self):
        try:
            if self.config.startup_delay_sec > 0:
                self._shutdown_requested.wait(self.config.startup_delay_sec)

            self._deadline = self._clock()
            while not self._shutdown_requested.is_set():
                self.run_tick()

        except Exception:
            logger.exception("Peripheral worker terminated by unexpected error")

        finally:
            self.state = PollerState.STOPPED
            try:
                self._close_transport()
            except Exception:
                logger.exception("Modbus close failed")
            finally:
                self._closed.set()
            logger.info("Peripheral worker stopped")

    def _close_transport(self):
        if self._transport_closed:
            return
        self._transport_closed = True
        self.transport.close()

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_tick(self) -> Optional[PollerState]:
        """
        Execute one cycle.

        Returns:
            State of the transaction performed, or None if shutdown was
            requested while waiting
        """
        if self._deadline is None:
            self._deadline = self._clock()

        step = self.health.step_size()
        self._deadline += self.config.loop_period_sec * step

        self._wait_until(self._deadline)
        if self._shutdown_requested.is_set():
            return None

        self.tick_count += 1
        return self._transact(step)

    def _wait_until(self, deadline: float):
        now = self._clock()
        while now < deadline and not self._shutdown_requested.is_set():
            self.monitor.check(now)

            now = self._clock()
            if now >= deadline:
                break

            self._sleep(min(self.config.wait_step_sec, deadline - now))
            now = self._clock()

    def _next_read(self) -> PollerState:
        if self._last_read is PollerState.READING_COILS:
            return PollerState.READING_INPUT_REGISTERS
        return PollerState.READING_COILS

    def _transact(self, step: int) -> PollerState:
        request = self.store.take_pending_write()
        if request is not None:
            self.state = PollerState.WRITING_COIL
        else:
            self.state = self._next_read()
            self._last_read = self.state

        try:
            if self.state is PollerState.WRITING_COIL:
                coil = self.register_map.coil(request.channel, CoilOffset.FORCED)
                self.transport.write_single_coil(coil.address, request.value)
                logger.debug(f"{coil.name} <- {request.value} (addr {coil.address})")

            elif self.state is PollerState.READING_COILS:
                start, count = self.register_map.coil_block()
                self.store.update_coils(self.transport.read_coils(start, count))

            else:
                start, count = self.register_map.input_block()
                self.store.update_registers(
                    self.transport.read_input_registers(start, count)
                )

        except ModbusTransportError as e:
            self.health.record_failure(step)
            logger.warning(f"{self.health.quality_text()} {self.state.value} failed: {e}")
            return self.state

        self.health.record_success(step)

        if self.state is PollerState.READING_INPUT_REGISTERS and self.on_refresh:
            self.on_refresh()

        return self.state
