"""Active-position tracking used to gate stale engine analysis."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import chess

from .parser import InfoRecord

POSITION_COMMAND = "position"
POSITION_FEN = "fen"
POSITION_STARTPOS = "startpos"
STOP_COMMAND = "stop"
GO_COMMAND = "go"


def is_position_command(command: str) -> bool:
    tokens = command.split()
    return (
        len(tokens) >= 2
        and tokens[0] == POSITION_COMMAND
        and tokens[1] in (POSITION_FEN, POSITION_STARTPOS)
    )


def is_stop_command(command: str) -> bool:
    return command.strip() == STOP_COMMAND


def is_go_command(command: str) -> bool:
    tokens = command.split()
    return bool(tokens) and tokens[0] == GO_COMMAND


def extract_fen(command: str) -> Optional[str]:
    """Return the FEN a ``position`` command sets, ignoring any ``moves`` clause."""
    if not is_position_command(command):
        return None
    tokens = command.split()
    if tokens[1] == POSITION_STARTPOS:
        return chess.STARTING_FEN
    fields = tokens[2:]
    if "moves" in fields:
        fields = fields[: fields.index("moves")]
    return " ".join(fields)


@dataclass(frozen=True)
class PositionContext:
    fen: str = ""
    white_to_move: bool = True


class PositionGate:
    """Holds the position most recently sent to the engine.

    Analysis is attributed to the position active when the command was
    issued; the engine is assumed to analyse one position at a time.
    """

    def __init__(self) -> None:
        self._context = PositionContext()

    @property
    def context(self) -> PositionContext:
        return self._context

    @property
    def fen(self) -> str:
        return self._context.fen

    @property
    def white_to_move(self) -> bool:
        return self._context.white_to_move

    def set_position(self, command: str) -> PositionContext:
        fen = extract_fen(command)
        if fen is None:
            raise ValueError(f"Not a position command: {command!r}")
        fields = fen.split(" ")
        white_to_move = True
        if len(fields) > 1:
            white_to_move = fields[1] == "w"
        self._context = PositionContext(fen=fen, white_to_move=white_to_move)
        return self._context

    def is_stale(self, record: InfoRecord) -> bool:
        return record.white_to_move != self._context.white_to_move

    def reset(self) -> None:
        self._context = PositionContext()
