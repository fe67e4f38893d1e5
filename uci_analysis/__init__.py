"""Public package interface for the UCI analysis pipeline."""

from .aggregator import AggregatedInfoEvent, BestMoveEvent, MultiPVAggregator, PVEntry
from .coalescer import CoalescerState, EventCoalescer
from .commands import AnalysisOptions, build_go_command, build_position_command
from .engine_process import (
    EngineError,
    EngineProcess,
    EngineStartError,
    EngineWriteError,
    SubprocessEngine,
)
from .events import ANALYZED_OUTPUT_EVENT, OUTPUT_EVENT, ListenerHub
from .parser import BestMoveRecord, InfoRecord, format_evaluation, parse_line
from .pipeline import AnalysisPipeline
from .position import PositionContext, PositionGate
from .reassembler import LineReassembler
from .session import AnalysisSession, SessionConfig
from .utils import ReportingLevel

__all__ = [
    "ANALYZED_OUTPUT_EVENT",
    "OUTPUT_EVENT",
    "AggregatedInfoEvent",
    "AnalysisOptions",
    "AnalysisPipeline",
    "AnalysisSession",
    "BestMoveEvent",
    "BestMoveRecord",
    "CoalescerState",
    "EngineError",
    "EngineProcess",
    "EngineStartError",
    "EngineWriteError",
    "EventCoalescer",
    "InfoRecord",
    "LineReassembler",
    "ListenerHub",
    "MultiPVAggregator",
    "PVEntry",
    "PositionContext",
    "PositionGate",
    "ReportingLevel",
    "SessionConfig",
    "SubprocessEngine",
    "build_go_command",
    "build_position_command",
    "format_evaluation",
    "parse_line",
]
