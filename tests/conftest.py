"""
Pytest configuration and shared test utilities.

Provides a manual clock and a scripted fake Modbus transport so the
peripheral worker can be driven tick by tick without a serial port.
"""

from typing import List, Optional, Tuple

import pytest

from beam_monitor.config import PollerConfig
from beam_monitor.core import HealthTracker, PeripheralWorker, RegisterStore
from beam_monitor.errors import FailureCode, ModbusTransportError
from beam_monitor.modbus import ModbusRegisterMap


class ManualClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        # Guarantee progress on sub-nanosecond float remainders
        self.now += max(seconds, 1e-6)

    def advance(self, seconds: float):
        self.now += seconds


class FakeTransport:
    """Records every transaction; fails while `failing` is True."""

    def __init__(self, clock=None, layout=None):
        self.clock = clock
        self.layout = layout or ModbusRegisterMap().layout
        self.calls: List[Tuple[str, tuple, Optional[float]]] = []
        self.failing = False
        self.open_calls = 0
        self.close_calls = 0
        self.open_error: Optional[Exception] = None
        self.registers = list(range(100, 100 + self.layout.register_count))
        self.coils = [False] * self.layout.coil_count

    def _record(self, name, *args):
        self.calls.append((name, args, self.clock() if self.clock else None))
        if self.failing:
            code = (
                FailureCode.ERROR_MODBUS_WRITING
                if name == "write_single_coil"
                else FailureCode.ERROR_MODBUS_READING
            )
            raise ModbusTransportError(f"{name} timed out", code)

    def open(self):
        self.open_calls += 1
        if self.open_error is not None:
            raise self.open_error

    def close(self):
        self.close_calls += 1

    def read_input_registers(self, start, count):
        self._record("read_input_registers", start, count)
        return list(self.registers)

    def read_coils(self, start, count):
        self._record("read_coils", start, count)
        return list(self.coils)

    def write_single_coil(self, address, value):
        self._record("write_single_coil", address, value)

    @property
    def names(self) -> List[str]:
        return [name for name, _, _ in self.calls]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def poller_config():
    return PollerConfig(startup_delay_sec=0.0)


@pytest.fixture
def store(clock):
    return RegisterStore(ModbusRegisterMap(), clock=clock)


@pytest.fixture
def transport(clock):
    return FakeTransport(clock=clock)


@pytest.fixture
def refreshes():
    return []


@pytest.fixture
def worker(transport, store, poller_config, clock, refreshes):
    return PeripheralWorker(
        transport,
        store,
        health=HealthTracker(poller_config),
        config=poller_config,
        on_refresh=lambda: refreshes.append(clock()),
        clock=clock,
        sleep=clock.sleep,
    )
