"""Qt signal bridge for delivering analysis events to a GUI thread."""

from __future__ import annotations

from typing import Any, Optional

from PySide6.QtCore import QObject, Signal

from .events import ANALYZED_OUTPUT_EVENT, OUTPUT_EVENT


class QtEventSink(QObject):
    """Re-emits session events as Qt signals.

    Pass :meth:`dispatch` as the session's ``emit`` callable. The session
    calls it from its reader thread; Qt queues delivery to receivers living
    in the GUI thread.
    """

    output_received = Signal(str)
    analysis_received = Signal(object)
    best_move_received = Signal(object)

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)

    def dispatch(self, event_name: str, payload: Any) -> None:
        if event_name == OUTPUT_EVENT:
            self.output_received.emit(str(payload))
            return
        if event_name != ANALYZED_OUTPUT_EVENT:
            return
        self.analysis_received.emit(payload)
        if isinstance(payload, dict) and payload.get("type") == "bestmove":
            self.best_move_received.emit(payload)
