"""Event names and a listener registry acting as the host event sink."""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List

from .utils import debug_text

OUTPUT_EVENT = "engine-output"
ANALYZED_OUTPUT_EVENT = "engine-analyzed-output"

EmitFn = Callable[[str, Any], None]
MessageListener = Callable[[str], None]
AnalysisListener = Callable[[Dict[str, Any]], None]
BestMoveListener = Callable[[Dict[str, Any]], None]
Unsubscribe = Callable[[], None]


class ListenerHub:
    """Fans emitted events out to registered listeners.

    Raw output lines go to message listeners, analyzed payloads go to
    analysis listeners, and ``bestmove`` payloads additionally reach the
    best-move listeners. A failing listener is reported and skipped so one
    consumer cannot break delivery to the others.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._message_listeners: List[MessageListener] = []
        self._analysis_listeners: List[AnalysisListener] = []
        self._bestmove_listeners: List[BestMoveListener] = []

    def emit(self, event_name: str, payload: Any) -> None:
        if event_name == OUTPUT_EVENT:
            self._notify(self._message_listeners, payload)
            return
        if event_name != ANALYZED_OUTPUT_EVENT:
            return
        self._notify(self._analysis_listeners, payload)
        if isinstance(payload, dict) and payload.get("type") == "bestmove":
            self._notify(self._bestmove_listeners, payload)

    def add_message_listener(self, listener: MessageListener) -> Unsubscribe:
        return self._add(self._message_listeners, listener)

    def add_analysis_listener(self, listener: AnalysisListener) -> Unsubscribe:
        return self._add(self._analysis_listeners, listener)

    def add_bestmove_listener(self, listener: BestMoveListener) -> Unsubscribe:
        return self._add(self._bestmove_listeners, listener)

    def remove_message_listener(self, listener: MessageListener) -> None:
        self._remove(self._message_listeners, listener)

    def remove_analysis_listener(self, listener: AnalysisListener) -> None:
        self._remove(self._analysis_listeners, listener)

    def remove_bestmove_listener(self, listener: BestMoveListener) -> None:
        self._remove(self._bestmove_listeners, listener)

    def clear(self) -> None:
        with self._lock:
            self._message_listeners.clear()
            self._analysis_listeners.clear()
            self._bestmove_listeners.clear()

    def _add(self, listeners: List[Callable], listener: Callable) -> Unsubscribe:
        with self._lock:
            listeners.append(listener)
        return lambda: self._remove(listeners, listener)

    def _remove(self, listeners: List[Callable], listener: Callable) -> None:
        with self._lock:
            if listener in listeners:
                listeners.remove(listener)

    def _notify(self, listeners: List[Callable], payload: Any) -> None:
        with self._lock:
            targets = list(listeners)
        for listener in targets:
            try:
                listener(payload)
            except Exception as exc:
                print(debug_text(f"Listener {listener!r} failed: {exc}"))
