"""Classify UCI output lines and extract typed analysis fields."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

SCORE_CP = "cp"
SCORE_MATE = "mate"
SCORE_TYPES = (SCORE_CP, SCORE_MATE)


@dataclass(frozen=True)
class InfoRecord:
    """One ``info`` line carrying a score and a principal variation."""

    multipv: int
    depth: int
    score_type: str
    score_value: int
    evaluation: str
    pv: str
    white_to_move: bool

    @property
    def best_move(self) -> str:
        return self.pv.split(" ", 1)[0]


@dataclass(frozen=True)
class BestMoveRecord:
    move: str
    ponder: Optional[str] = None


ParsedLine = Union[InfoRecord, BestMoveRecord, None]


def format_evaluation(score_type: str, score_value: int, white_to_move: bool) -> str:
    """Render a score from White's point of view.

    Centipawns become pawns with two decimals (``"-0.50"``); mate scores
    become ``"M3"`` / ``"-M3"``. Engines report scores for the side to move,
    so the sign is flipped when Black is to move.
    """
    if score_type == SCORE_CP:
        cp = score_value if white_to_move else -score_value
        return f"{cp / 100:.2f}"
    if score_type == SCORE_MATE:
        text = ("-M" if score_value < 0 else "M") + str(abs(score_value))
        if not white_to_move:
            text = text[1:] if text.startswith("-") else "-" + text
        return text
    raise ValueError(f"Unknown score type: {score_type}")


def _int_after(tokens: List[str], index: int) -> Optional[int]:
    if index < 0 or index + 1 >= len(tokens):
        return None
    try:
        return int(tokens[index + 1])
    except ValueError:
        return None


def _parse_info(tokens: List[str], white_to_move: bool) -> Optional[InfoRecord]:
    score_index = depth_index = pv_index = multipv_index = -1
    for i, token in enumerate(tokens):
        if token == "score" and score_index < 0:
            score_index = i
        elif token == "depth" and depth_index < 0:
            depth_index = i
        elif token == "multipv" and multipv_index < 0:
            multipv_index = i
        elif token == "pv":
            pv_index = i
            break

    if score_index < 0 or depth_index < 0 or pv_index < 0:
        return None
    if score_index + 2 >= len(tokens):
        return None

    score_type = tokens[score_index + 1]
    if score_type not in SCORE_TYPES:
        return None
    score_value = _int_after(tokens, score_index + 1)
    depth = _int_after(tokens, depth_index)
    if score_value is None or depth is None or depth < 0:
        return None

    multipv = 1
    if multipv_index >= 0:
        parsed = _int_after(tokens, multipv_index)
        if parsed is None or parsed < 1:
            return None
        multipv = parsed

    pv_moves = tokens[pv_index + 1:]
    if not pv_moves:
        return None

    return InfoRecord(
        multipv=multipv,
        depth=depth,
        score_type=score_type,
        score_value=score_value,
        evaluation=format_evaluation(score_type, score_value, white_to_move),
        pv=" ".join(pv_moves),
        white_to_move=white_to_move,
    )


def _parse_bestmove(tokens: List[str]) -> Optional[BestMoveRecord]:
    if len(tokens) < 2:
        return None
    ponder = None
    if len(tokens) >= 4 and tokens[2] == "ponder":
        ponder = tokens[3]
    return BestMoveRecord(move=tokens[1], ponder=ponder)


def parse_line(line: str, white_to_move: bool = True) -> ParsedLine:
    """Parse one trimmed engine line.

    Returns an :class:`InfoRecord`, a :class:`BestMoveRecord`, or ``None``
    for anything uninteresting or malformed. Never raises on bad input.
    """
    tokens = line.split()
    if not tokens or "currmove" in tokens:
        return None
    if tokens[0] == "bestmove":
        return _parse_bestmove(tokens)
    if tokens[0] == "info" and len(tokens) > 1 and tokens[1] == "string":
        return None
    if "info" in tokens and "score" in tokens and "pv" in tokens:
        return _parse_info(tokens, white_to_move)
    return None
