"""Serialized analysis pipeline: chunks in, sink events out."""

from __future__ import annotations

from typing import Any, List, Tuple

from .aggregator import AggregatedInfoEvent, AnalysisEvent, BestMoveEvent, MultiPVAggregator
from .coalescer import DEFAULT_WINDOW_MS, EventCoalescer
from .events import ANALYZED_OUTPUT_EVENT, OUTPUT_EVENT
from .parser import BestMoveRecord, InfoRecord, parse_line
from .position import PositionGate, is_go_command, is_position_command, is_stop_command
from .reassembler import LineReassembler
from .utils import ReportingLevel, debug_text, received_text, report

Outgoing = Tuple[str, Any]

BESTMOVE_TOKEN = "bestmove"


class AnalysisPipeline:
    """Reassembler → parser → position gate → aggregator → coalescer.

    Not thread-safe on its own: the owning session serializes every call
    under one lock. Each call returns the ``(event_name, payload)`` pairs to
    hand to the sink, in emission order, so emitting can happen after the
    lock is released.

    The pipeline also tracks which search the engine output belongs to. A
    search is running from ``go`` (or its first ``info`` line) until its
    ``bestmove``. A new position or another ``go`` abandons the running
    search; everything it still prints, up to and including its
    ``bestmove``, is dropped. UCI engines answer every ``go`` with exactly
    one ``bestmove``, which is what ends the drop.
    """

    def __init__(
        self,
        *,
        window_ms: int = DEFAULT_WINDOW_MS,
        emit_raw_output: bool = True,
        reporting_level: ReportingLevel = ReportingLevel.BASIC,
    ) -> None:
        self.gate = PositionGate()
        self.reassembler = LineReassembler()
        self.aggregator = MultiPVAggregator(self.gate)
        self.coalescer = EventCoalescer(self._queue_event, window_ms=window_ms)
        self.emit_raw_output = emit_raw_output
        self.reporting_level = reporting_level
        self._outbox: List[Outgoing] = []
        self._searching = False
        self._abandoned = 0

    @property
    def searching(self) -> bool:
        return self._searching

    @property
    def abandoned_searches(self) -> int:
        return self._abandoned

    def process_chunk(self, raw_chunk: str, now: float) -> List[Outgoing]:
        self.coalescer.poll(now)
        for line in self.reassembler.feed(raw_chunk):
            self._process_line(line, now)
        self.coalescer.poll(now)
        return self._take_outbox()

    def discard_chunk(self, raw_chunk: str) -> None:
        """Consume already-buffered output without emitting anything.

        Only ``bestmove`` lines matter here: they still close their search.
        """
        for line in self.reassembler.feed(raw_chunk):
            report(self.reporting_level, ReportingLevel.VERBOSE, received_text(line))
            if line.split()[0] == BESTMOVE_TOKEN and self._finish_search():
                self.aggregator.reset()

    def tick(self, now: float) -> List[Outgoing]:
        self.coalescer.poll(now)
        return self._take_outbox()

    def apply_command(self, command: str) -> None:
        """Update pipeline state for an outgoing command before it is sent."""
        if is_position_command(command):
            self._abandon_search()
            self.gate.set_position(command)
            self.aggregator.reset()
            self._clear_tail()
            self.coalescer.discard()
        elif is_stop_command(command):
            self._clear_tail()
        elif is_go_command(command):
            self._abandon_search()
            self._searching = True

    def reset(self) -> None:
        self.gate.reset()
        self.aggregator.reset()
        self.reassembler.reset()
        self.coalescer.discard()
        self._outbox.clear()
        self._searching = False
        self._abandoned = 0

    def _abandon_search(self) -> None:
        if self._searching:
            self._abandoned += 1
            self._searching = False

    def _finish_search(self) -> bool:
        """Close the oldest open search; True when it is the current one."""
        if self._abandoned:
            self._abandoned -= 1
            return False
        self._searching = False
        return True

    def _clear_tail(self) -> None:
        tail = self.reassembler.pending.strip()
        self.reassembler.reset()
        # a cut-off bestmove still ends its search
        if tail and (BESTMOVE_TOKEN.startswith(tail) or tail.startswith(BESTMOVE_TOKEN)):
            if self._finish_search():
                self.aggregator.reset()

    def _process_line(self, line: str, now: float) -> None:
        report(self.reporting_level, ReportingLevel.VERBOSE, received_text(line))
        if self.emit_raw_output:
            self._outbox.append((OUTPUT_EVENT, line))
        try:
            record = parse_line(line, self.gate.white_to_move)
            if isinstance(record, BestMoveRecord):
                if self._finish_search():
                    self.coalescer.offer_bestmove(self.aggregator.apply_bestmove(record))
                else:
                    self._report_dropped(line)
            elif isinstance(record, InfoRecord):
                if self._abandoned:
                    self._report_dropped(line)
                    return
                self._searching = True
                event = self.aggregator.apply_info(record)
                if event is not None:
                    self.coalescer.offer_info(event, now)
        except Exception as exc:
            report(
                self.reporting_level,
                ReportingLevel.BASIC,
                debug_text(f"Dropped engine line {line!r}: {exc}"),
            )

    def _report_dropped(self, line: str) -> None:
        report(
            self.reporting_level,
            ReportingLevel.VERBOSE,
            debug_text(f"Ignoring output of an abandoned search: {line!r}"),
        )

    def _queue_event(self, event: AnalysisEvent) -> None:
        if isinstance(event, (AggregatedInfoEvent, BestMoveEvent)):
            self._outbox.append((ANALYZED_OUTPUT_EVENT, event.to_payload()))

    def _take_outbox(self) -> List[Outgoing]:
        outgoing = self._outbox
        self._outbox = []
        return outgoing
