from __future__ import annotations

# Display board window (Tkinter).
#
# Goal: show the same information as the console viewer, but full-screen-ish on
# the kiosk monitor.
#
# Architecture:
# - The viewer runtime (CallerContext) runs on an asyncio loop in a background
#   thread: push stream, polling, announcements.
# - Tkinter must be updated from the main UI thread.
# - We therefore push every rendered Screen into a Queue and poll it via
#   `root.after(...)`. Button clicks go the other way with
#   `call_soon_threadsafe`.

import asyncio
import logging
import queue
import threading
import tkinter as tk
from concurrent.futures import TimeoutError as FutureTimeout
from tkinter import ttk
from typing import Any, cast

from .config import CallerConfig
from .context import CallerContext, Screen
from .store import CounterStatus

logger = logging.getLogger(__name__)


class DisplayBoardApp:
    def __init__(self, *, config: CallerConfig, refresh_ms: int = 250) -> None:
        self.config = config
        self.refresh_ms = refresh_ms

        self.root = tk.Tk()
        self.root.title("Papan Antrian" if config.is_display else f"Loket {config.counter_id}")
        self.root.geometry("960x600")

        # Top info bar
        self.info_var = tk.StringVar(value="Menghubungkan...")
        ttk.Label(self.root, textvariable=self.info_var).pack(fill=cast(Any, tk.X), padx=10, pady=(10, 5))

        # Now calling
        self.number_var = tk.StringVar(value="---")
        self.counter_var = tk.StringVar(value="")
        ttk.Label(self.root, textvariable=self.number_var, font=("Helvetica", 96, "bold"), anchor="center").pack(
            fill=cast(Any, tk.X), padx=10
        )
        ttk.Label(self.root, textvariable=self.counter_var, font=("Helvetica", 32), anchor="center").pack(
            fill=cast(Any, tk.X), padx=10, pady=(0, 10)
        )

        body = ttk.Frame(self.root)
        body.pack(fill=cast(Any, tk.BOTH), expand=True, padx=10, pady=10)

        # Recent calls
        self.recent = ttk.Treeview(body, columns=("ticket", "counter", "ago"), show="headings", height=8)
        self.recent.heading("ticket", text="Nomor")
        self.recent.heading("counter", text="Loket")
        self.recent.heading("ago", text="Waktu")
        self.recent.column("ticket", width=100, anchor=cast(Any, tk.W))
        self.recent.column("counter", width=160, anchor=cast(Any, tk.W))
        self.recent.column("ago", width=120, anchor=cast(Any, tk.W))
        self.recent.pack(side=cast(Any, tk.LEFT), fill=cast(Any, tk.BOTH), expand=True)

        # Counters
        self.counters = ttk.Treeview(body, columns=("counter", "ticket"), show="headings", height=8)
        self.counters.heading("counter", text="Loket")
        self.counters.heading("ticket", text="Dilayani")
        self.counters.column("counter", width=160, anchor=cast(Any, tk.W))
        self.counters.column("ticket", width=100, anchor=cast(Any, tk.W))
        self.counters.tag_configure("highlighted", background="#fde68a")
        self.counters.pack(side=cast(Any, tk.LEFT), fill=cast(Any, tk.BOTH), expand=True, padx=(10, 0))

        # Audio toggle (sound usually has to be switched on by an operator once)
        self.audio_button = ttk.Button(self.root, text="Aktifkan Suara", command=self._toggle_audio)
        self.audio_button.pack(pady=(0, 10))

        # Rendered screens from the asyncio thread
        self._inbox: queue.Queue[Screen] = queue.Queue(maxsize=5)

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="queue-caller-loop", daemon=True)
        self.context: CallerContext | None = None
        self._audio_enabled = False

        self.root.protocol("WM_DELETE_WINDOW", self.close)

    def start(self) -> None:
        self._thread.start()
        self.root.after(cast(Any, self.refresh_ms), self._drain_inbox)
        self.root.mainloop()

    def close(self) -> None:
        try:
            if self.context is not None:
                future = asyncio.run_coroutine_threadsafe(self.context.dispose(), self._loop)
                try:
                    future.result(timeout=2.0)
                except FutureTimeout:
                    logger.warning("viewer did not stop within 2s")
            self._loop.call_soon_threadsafe(self._loop.stop)
        finally:
            self.root.destroy()

    # -------------------- asyncio thread --------------------

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self.context = CallerContext.create(self.config, renderer=self._on_screen)
        self._loop.run_until_complete(self.context.start())
        self._loop.run_forever()

    def _on_screen(self, screen: Screen) -> None:
        try:
            self._inbox.put_nowait(screen)
        except queue.Full:
            # Only the newest screen matters; drop the oldest.
            try:
                self._inbox.get_nowait()
            except queue.Empty:
                pass
            self._inbox.put_nowait(screen)

    # -------------------- UI thread --------------------

    def _toggle_audio(self) -> None:
        ctx = self.context
        if ctx is None:
            return
        action = ctx.disable_audio if self._audio_enabled else ctx.enable_audio
        self._loop.call_soon_threadsafe(action)

    def _drain_inbox(self) -> None:
        latest: Screen | None = None
        while True:
            try:
                latest = self._inbox.get_nowait()
            except queue.Empty:
                break

        if latest is not None:
            self._render(latest)

        self.root.after(cast(Any, self.refresh_ms), self._drain_inbox)

    def _render(self, screen: Screen) -> None:
        view = screen.view
        status = "Terhubung" if view.connected else "Polling Mode"
        waiting = f" | menunggu: {view.waiting_count}" if view.waiting_count is not None else ""
        self.info_var.set(f"{self.config.server_url} | {status}{waiting} | {view.rendered_at:%H:%M:%S}")

        if view.now_calling is not None:
            self.number_var.set(view.now_calling.ticket_number)
            self.counter_var.set(f"Menuju {view.now_calling.counter_label}")

        self._audio_enabled = screen.audio_enabled
        self.audio_button.configure(text="Matikan Suara" if screen.audio_enabled else "Aktifkan Suara")

        for item in self.recent.get_children():
            self.recent.delete(item)
        for entry in view.recent:
            self.recent.insert("", cast(Any, tk.END), values=(entry.ticket_number, entry.counter_label, entry.ago))

        for item in self.counters.get_children():
            self.counters.delete(item)
        if not screen.counters:
            # Explicit empty state so the UI doesn't look frozen.
            self.counters.insert("", cast(Any, tk.END), values=("(none)", "---"))
        for line in screen.counters:
            tags = ("highlighted",) if line.status is CounterStatus.HIGHLIGHTED else ()
            self.counters.insert("", cast(Any, tk.END), values=(line.label, line.ticket_number or "---"), tags=tags)
