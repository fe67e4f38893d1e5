"""Multi-PV state aggregation for the active position."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .parser import BestMoveRecord, InfoRecord
from .position import PositionGate


@dataclass
class PVEntry:
    index: int
    evaluation: str
    best_move: str
    line: str
    depth: int


@dataclass(frozen=True)
class AggregatedInfoEvent:
    """Snapshot of every known PV for one position, ordered by index."""

    evaluations: Tuple[str, ...]
    best_moves: Tuple[str, ...]
    lines: Tuple[str, ...]
    depths: Tuple[int, ...]
    depth: int
    fen: str
    indices: Tuple[int, ...] = field(default=(), compare=False)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": "info",
            "evaluations": list(self.evaluations),
            "bestMoves": list(self.best_moves),
            "lines": list(self.lines),
            "depths": list(self.depths),
            "depth": self.depth,
            "fen": self.fen,
        }


@dataclass(frozen=True)
class BestMoveEvent:
    move: str
    fen: str
    ponder: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": "bestmove", "move": self.move, "fen": self.fen}
        if self.ponder:
            payload["ponder"] = self.ponder
        return payload


AnalysisEvent = Union[AggregatedInfoEvent, BestMoveEvent]


class MultiPVAggregator:
    """Keeps the deepest known result per PV index for the current position.

    Depth is monotonic per index: an ``info`` line is accepted only when its
    depth is at least the last accepted depth for that index. Equal depth
    overwrites, since the engine may refine an evaluation at a fixed depth.
    """

    def __init__(self, gate: PositionGate) -> None:
        self._gate = gate
        self._entries: Dict[int, PVEntry] = {}
        self._last_depths: Dict[int, int] = {}

    @property
    def entries(self) -> List[PVEntry]:
        return [self._entries[index] for index in sorted(self._entries)]

    def last_depth(self, index: int) -> int:
        return self._last_depths.get(index, 0)

    def apply(self, record: Union[InfoRecord, BestMoveRecord]) -> Optional[AnalysisEvent]:
        if isinstance(record, BestMoveRecord):
            return self.apply_bestmove(record)
        if isinstance(record, InfoRecord):
            return self.apply_info(record)
        return None

    def apply_info(self, record: InfoRecord) -> Optional[AggregatedInfoEvent]:
        if self._gate.is_stale(record):
            return None
        if record.depth < self.last_depth(record.multipv):
            return None

        entry = self._entries.get(record.multipv)
        if entry is None:
            entry = PVEntry(
                index=record.multipv,
                evaluation=record.evaluation,
                best_move=record.best_move,
                line=record.pv,
                depth=record.depth,
            )
            self._entries[record.multipv] = entry
        else:
            entry.evaluation = record.evaluation
            entry.best_move = record.best_move
            entry.line = record.pv
            entry.depth = record.depth
        self._last_depths[record.multipv] = record.depth
        return self.snapshot()

    def apply_bestmove(self, record: BestMoveRecord) -> BestMoveEvent:
        self.reset()
        return BestMoveEvent(move=record.move, fen=self._gate.fen, ponder=record.ponder)

    def snapshot(self) -> AggregatedInfoEvent:
        entries = self.entries
        primary = self._entries.get(1)
        if primary is None and entries:
            primary = entries[0]
        return AggregatedInfoEvent(
            evaluations=tuple(entry.evaluation for entry in entries),
            best_moves=tuple(entry.best_move for entry in entries),
            lines=tuple(entry.line for entry in entries),
            depths=tuple(entry.depth for entry in entries),
            depth=primary.depth if primary is not None else 0,
            fen=self._gate.fen,
            indices=tuple(entry.index for entry in entries),
        )

    def reset(self) -> None:
        self._entries.clear()
        self._last_depths.clear()
