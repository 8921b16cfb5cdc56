"""
Operator Panel
==============

Minimal Tk window over the register store.

One frame per cup with its calibrated currents, coil states, limit-switch
warning and a Force toggle; a status line with the link quality. All
widget updates happen in refresh(), which the DisplayBridge runs in the
Tk thread.

Date: October 2026
License: MIT
"""

import logging
import tkinter as tk
from tkinter import ttk
from typing import List

from .config import ChannelCalibration
from .core import HealthTracker, PeripheralWorker, RegisterStore
from .display import DisplayBridge
from .modbus.protocols import format_current

logger = logging.getLogger(__name__)

COLOR_HEALTHY = "black"
COLOR_UNHEALTHY = "grey60"


class OperatorPanel:
    """Tk view of the cups; reads the store, never the transport."""

    def __init__(
        self,
        root: tk.Tk,
        store: RegisterStore,
        health: HealthTracker,
        bridge: DisplayBridge,
        worker: PeripheralWorker,
        calibrations: List[ChannelCalibration],
    ):
        self.root = root
        self.store = store
        self.health = health
        self.bridge = bridge
        self.worker = worker
        self.calibrations = calibrations
        self.visible = store.layout.visible_registers

        self.root.title("Beam Monitor")
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

        self._value_vars: List[List[tk.StringVar]] = []
        self._state_vars: List[tk.StringVar] = []
        self._warning_labels: List[ttk.Label] = []
        self._value_labels: List[List[ttk.Label]] = []

        for channel in range(store.layout.channels):
            self._build_channel(channel)

        self._quality_var = tk.StringVar(value=self.health.quality_text())
        self._quality_label = ttk.Label(self.root, textvariable=self._quality_var)
        self._quality_label.grid(
            row=1, column=0, columnspan=store.layout.channels, sticky="w", padx=8
        )

        bridge.add_refresh_callback(self.refresh)

    def _build_channel(self, channel: int):
        frame = ttk.LabelFrame(self.root, text=f"Cup {channel + 1}")
        frame.grid(row=0, column=channel, padx=8, pady=8, sticky="n")

        values, labels = [], []
        for slot in range(self.visible):
            var = tk.StringVar(value="???")
            label = ttk.Label(frame, textvariable=var, font=("Helvetica", 20, "bold"))
            label.grid(row=slot, column=0, sticky="e")
            values.append(var)
            labels.append(label)
        self._value_vars.append(values)
        self._value_labels.append(labels)

        state = tk.StringVar(value="")
        ttk.Label(frame, textvariable=state).grid(row=self.visible, column=0)
        self._state_vars.append(state)

        warning = ttk.Label(frame, text="", foreground="red")
        warning.grid(row=self.visible + 1, column=0)
        self._warning_labels.append(warning)

        ttk.Button(
            frame, text="Force", command=lambda ch=channel: self._toggle_forced(ch)
        ).grid(row=self.visible + 2, column=0, pady=4)

    def _toggle_forced(self, channel: int):
        snapshot = self.store.snapshot()[channel]
        request = self.store.request_coil_write(channel, not snapshot.forced)
        logger.info(f"Cup {channel} force request: {request.value}")

    def refresh(self):
        """Re-render from the store (display thread only)."""
        healthy = self.health.is_healthy()
        color = COLOR_HEALTHY if healthy else COLOR_UNHEALTHY

        for snap in self.store.snapshot():
            currents = self.calibrations[snap.channel].to_physical(
                snap.registers[: self.visible]
            )
            for var, label, value in zip(
                self._value_vars[snap.channel], self._value_labels[snap.channel], currents
            ):
                var.set(format_current(value))
                label.configure(foreground=color)

            flags = [
                "forced" if snap.forced else "released",
                "blocked" if snap.blocked else "",
                "inserted" if snap.switch_pressed else "removed",
            ]
            if snap.write_pending:
                flags.append("pending")
            self._state_vars[snap.channel].set(" ".join(f for f in flags if f))

            self._warning_labels[snap.channel].configure(
                text="Limit switch error" if snap.limit_switch_error else ""
            )

        self._quality_var.set(f"Link {self.health.quality_text()}")
        self._quality_label.configure(foreground=color)

    def _on_close(self):
        if not self.worker.stop():
            logger.warning("Closing window with peripheral worker still running")
        self.bridge.detach()
        self.root.destroy()
