"""Engine analysis session: reader loop, command path and teardown."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Union

import chess

from .aggregator import PVEntry
from .coalescer import DEFAULT_WINDOW_MS
from .commands import (
    DEFAULT_MOVE_DEPTH,
    DEFAULT_MOVE_TIME_MS,
    AnalysisOptions,
    analysis_commands,
    computer_move_commands,
)
from .engine_process import EngineError, EngineProcess
from .events import EmitFn
from .pipeline import AnalysisPipeline, Outgoing
from .position import PositionContext, is_stop_command
from .utils import ReportingLevel, debug_text, info_text, report, sending_text

QUIT_COMMAND = "quit"


@dataclass(frozen=True)
class SessionConfig:
    coalesce_window_ms: int = DEFAULT_WINDOW_MS
    poll_interval_s: float = 0.01
    shutdown_grace_s: float = 1.0
    emit_raw_output: bool = True
    max_drain_chunks: int = 1024

    def __post_init__(self) -> None:
        if self.coalesce_window_ms <= 0:
            raise ValueError("coalesce_window_ms must be positive")
        if self.poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be positive")
        if self.shutdown_grace_s < 0:
            raise ValueError("shutdown_grace_s must not be negative")


class AnalysisSession:
    """Owns the reader thread and command path for one engine process.

    All pipeline state lives behind ``_state_lock``. The reader loop takes it
    for each read-and-process step (including the coalescing deadline check)
    and ``send_command`` takes it to apply position/stop resets before the
    command reaches the engine, so later output is always parsed against the
    new position. Events are handed to ``emit`` after the lock is released.
    """

    def __init__(
        self,
        engine: EngineProcess,
        emit: EmitFn,
        *,
        config: Optional[SessionConfig] = None,
        reporting_level: ReportingLevel = ReportingLevel.BASIC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self._emit = emit
        self._config = config or SessionConfig()
        self._reporting_level = reporting_level
        self._clock = clock
        self._pipeline = AnalysisPipeline(
            window_ms=self._config.coalesce_window_ms,
            emit_raw_output=self._config.emit_raw_output,
            reporting_level=reporting_level,
        )
        self._state_lock = threading.Lock()
        self._lifecycle_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._reader_thread: Optional[threading.Thread] = None
        self._is_started = False

    @property
    def is_running(self) -> bool:
        return self._is_started

    @property
    def position(self) -> PositionContext:
        with self._state_lock:
            return self._pipeline.gate.context

    @property
    def entries(self) -> List[PVEntry]:
        with self._state_lock:
            return [
                PVEntry(e.index, e.evaluation, e.best_move, e.line, e.depth)
                for e in self._pipeline.aggregator.entries
            ]

    @property
    def pending_output(self) -> str:
        with self._state_lock:
            return self._pipeline.reassembler.pending

    def start(self) -> bool:
        """Start the engine and the reader loop. Idempotent."""
        with self._lifecycle_lock:
            if self._is_started:
                return True
            try:
                self._engine.start()
            except EngineError as exc:
                self._report(ReportingLevel.BASIC, debug_text(f"Engine failed to start: {exc}"))
                return False

            self._stop_event.clear()
            with self._state_lock:
                self._pipeline.reset()
            self._reader_thread = threading.Thread(
                target=self._reader_loop, name="uci-analysis-reader", daemon=True
            )
            self._reader_thread.start()
            self._is_started = True
            self._report(ReportingLevel.BASIC, info_text("Engine session started"))
            return True

    def send_command(self, command: str) -> bool:
        """Forward *command* to the engine, resetting state for position/stop."""
        if not self._is_started or self._stop_event.is_set():
            self._report(
                ReportingLevel.BASIC,
                debug_text(f"Engine is not running; dropped command {command!r}"),
            )
            return False

        with self._state_lock:
            if is_stop_command(command):
                self._drain_engine_output()
            self._pipeline.apply_command(command)
            self._report(ReportingLevel.VERBOSE, sending_text(command))
            try:
                self._engine.write_line(command)
            except EngineError as exc:
                self._report(ReportingLevel.BASIC, debug_text(f"Command {command!r} failed: {exc}"))
                return False
        return True

    def send_commands(self, commands: Iterable[str]) -> bool:
        for command in commands:
            if not self.send_command(command):
                return False
        return True

    def analyze_position(
        self,
        position: Union[str, chess.Board],
        options: Optional[AnalysisOptions] = None,
    ) -> bool:
        """Set up *position* and start a multi-PV search on it."""
        commands = analysis_commands(position, options)
        if not self._is_started and not self.start():
            return False
        return self.send_commands(commands)

    def stop_analysis(self) -> bool:
        return self.send_command("stop")

    def get_computer_move(
        self,
        position: Union[str, chess.Board],
        movetime: int = DEFAULT_MOVE_TIME_MS,
        depth: int = DEFAULT_MOVE_DEPTH,
    ) -> bool:
        commands = computer_move_commands(position, movetime, depth)
        if not self._is_started and not self.start():
            return False
        return self.send_commands(commands)

    def shutdown(self) -> None:
        """Quit the engine, wait briefly for the reader, then tear down.

        Safe to call repeatedly and from any thread, including from a
        listener running on the reader thread.
        """
        with self._lifecycle_lock:
            if not self._is_started:
                return
            self._is_started = False
            grace = self._config.shutdown_grace_s

            try:
                self._report(ReportingLevel.VERBOSE, sending_text(QUIT_COMMAND))
                self._engine.write_line(QUIT_COMMAND)
            except EngineError as exc:
                self._report(ReportingLevel.BASIC, debug_text(f"Failed to send quit: {exc}"))

            self._stop_event.set()
            thread = self._reader_thread
            self._reader_thread = None
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=grace)
                if thread.is_alive():
                    self._report(
                        ReportingLevel.BASIC,
                        debug_text("Reader did not stop within grace period; abandoning it"),
                    )

            try:
                self._engine.stop(timeout=grace)
            except Exception as exc:
                self._report(ReportingLevel.BASIC, debug_text(f"Engine stop failed: {exc}"))

            with self._state_lock:
                self._pipeline.reset()
            self._report(ReportingLevel.BASIC, info_text("Engine session shut down"))

    def _reader_loop(self) -> None:
        while not self._stop_event.is_set():
            with self._state_lock:
                if self._stop_event.is_set():
                    break
                chunk = self._read_chunk()
                now = self._clock()
                if chunk:
                    outgoing = self._pipeline.process_chunk(chunk, now)
                else:
                    outgoing = self._pipeline.tick(now)
                wait = self._idle_wait(now)
            self._dispatch(outgoing)
            if not chunk:
                self._stop_event.wait(wait)

    def _read_chunk(self) -> Optional[str]:
        try:
            return self._engine.read_chunk()
        except Exception as exc:
            self._report(ReportingLevel.BASIC, debug_text(f"Engine read failed: {exc}"))
            return None

    def _drain_engine_output(self) -> None:
        for _ in range(self._config.max_drain_chunks):
            chunk = self._read_chunk()
            if chunk is None:
                break
            self._pipeline.discard_chunk(chunk)

    def _idle_wait(self, now: float) -> float:
        wait = self._config.poll_interval_s
        remaining = self._pipeline.coalescer.time_until_flush(now)
        if remaining is not None:
            wait = min(wait, remaining)
        return wait

    def _dispatch(self, outgoing: List[Outgoing]) -> None:
        for event_name, payload in outgoing:
            try:
                self._emit(event_name, payload)
            except Exception as exc:
                self._report(
                    ReportingLevel.BASIC, debug_text(f"Event sink failed on {event_name}: {exc}")
                )

    def _report(self, required: ReportingLevel, text: str) -> None:
        report(self._reporting_level, required, text)
