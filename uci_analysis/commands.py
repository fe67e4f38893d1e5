"""Builders for the UCI commands a host sends during analysis."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

import chess

DEFAULT_ANALYSIS_DEPTH = 20
DEFAULT_MOVE_TIME_MS = 1000
DEFAULT_MOVE_DEPTH = 15


@dataclass(frozen=True)
class AnalysisOptions:
    depth: int = DEFAULT_ANALYSIS_DEPTH
    multipv: int = 1
    movetime: Optional[int] = None
    nodes: Optional[int] = None

    def __post_init__(self) -> None:
        if self.depth < 1:
            raise ValueError("Analysis depth must be >= 1")
        if self.multipv < 1:
            raise ValueError("MultiPV must be >= 1")


def normalize_fen(position: Union[str, chess.Board]) -> str:
    """Return a validated FEN for a board or FEN string.

    Raises ``ValueError`` when python-chess rejects the FEN.
    """
    if isinstance(position, chess.Board):
        return position.fen()
    fen = " ".join(position.split())
    chess.Board(fen)
    return fen


def build_position_command(position: Union[str, chess.Board]) -> str:
    return f"position fen {normalize_fen(position)}"


def build_go_command(options: AnalysisOptions) -> str:
    """Construct an analysis ``go`` command from *options*."""
    parts: List[str] = ["go", "depth", str(options.depth), "multipv", str(options.multipv)]
    if options.movetime:
        parts += ["movetime", str(options.movetime)]
    if options.nodes:
        parts += ["nodes", str(options.nodes)]
    return " ".join(parts)


def build_move_command(
    movetime: int = DEFAULT_MOVE_TIME_MS, depth: int = DEFAULT_MOVE_DEPTH
) -> str:
    return f"go movetime {movetime} depth {depth}"


def analysis_commands(
    position: Union[str, chess.Board], options: Optional[AnalysisOptions] = None
) -> List[str]:
    """Full handshake-to-search command sequence for analysing a position."""
    options = options or AnalysisOptions()
    return [
        "uci",
        "isready",
        "ucinewgame",
        build_position_command(position),
        build_go_command(options),
    ]


def computer_move_commands(
    position: Union[str, chess.Board],
    movetime: int = DEFAULT_MOVE_TIME_MS,
    depth: int = DEFAULT_MOVE_DEPTH,
) -> List[str]:
    return [
        "uci",
        "isready",
        build_position_command(position),
        build_move_command(movetime, depth),
    ]
