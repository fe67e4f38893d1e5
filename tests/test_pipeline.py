import chess
import pytest

from uci_analysis.events import ANALYZED_OUTPUT_EVENT, OUTPUT_EVENT
from uci_analysis.parser import parse_line
from uci_analysis.pipeline import AnalysisPipeline
from uci_analysis.utils import ReportingLevel

BLACK_TO_MOVE = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR b KQkq - 0 1"
NEW_FEN = "r1bqkbnr/pppp1ppp/2n5/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R w KQkq - 2 3"


@pytest.fixture()
def pipeline():
    pipeline = AnalysisPipeline(
        window_ms=500, emit_raw_output=False, reporting_level=ReportingLevel.QUIET
    )
    pipeline.apply_command(f"position fen {chess.STARTING_FEN}")
    return pipeline


def analyzed(outgoing):
    return [payload for name, payload in outgoing if name == ANALYZED_OUTPUT_EVENT]


def test_black_to_move_scenario(pipeline) -> None:
    pipeline.apply_command(f"position fen {BLACK_TO_MOVE}")
    assert pipeline.process_chunk("info depth 10 score cp 50 pv e7e6\n", now=0.0) == []
    payloads = analyzed(pipeline.tick(now=0.5))
    assert payloads == [
        {
            "type": "info",
            "evaluations": ["-0.50"],
            "bestMoves": ["e7e6"],
            "lines": ["e7e6"],
            "depths": [10],
            "depth": 10,
            "fen": BLACK_TO_MOVE,
        }
    ]


def test_out_of_order_depth_keeps_deeper_result(pipeline) -> None:
    pipeline.process_chunk("info depth 10 multipv 1 score cp 20 pv e2e4\n", now=0.0)
    pipeline.process_chunk("info depth 9 multipv 1 score cp 80 pv d2d4\n", now=0.1)
    payloads = analyzed(pipeline.tick(now=0.6))
    assert len(payloads) == 1
    assert payloads[0]["depth"] == 10
    assert payloads[0]["bestMoves"] == ["e2e4"]


def test_bestmove_flushes_pending_info_first(pipeline) -> None:
    chunk = (
        "info depth 18 score cp 31 pv e2e4 e7e5\n"
        "info depth 19 score cp 28 pv e2e4 c7c5\n"
        "bestmove e2e4 ponder c7c5\n"
    )
    payloads = analyzed(pipeline.process_chunk(chunk, now=0.0))
    assert [payload["type"] for payload in payloads] == ["info", "bestmove"]
    assert payloads[0]["depth"] == 19
    assert payloads[1] == {
        "type": "bestmove",
        "move": "e2e4",
        "fen": chess.STARTING_FEN,
        "ponder": "c7c5",
    }
    assert analyzed(pipeline.tick(now=5.0)) == []
    assert pipeline.aggregator.entries == []


def test_bestmove_with_no_pending_info(pipeline) -> None:
    payloads = analyzed(pipeline.process_chunk("bestmove e7e6\n", now=0.0))
    assert payloads == [{"type": "bestmove", "move": "e7e6", "fen": chess.STARTING_FEN}]


def test_emitted_depths_are_monotonic_per_index(pipeline) -> None:
    depths = [1, 2, 4, 3, 5, 5, 2, 7, 6, 9]
    emitted = []
    now = 0.0
    for depth in depths:
        outgoing = pipeline.process_chunk(
            f"info depth {depth} score cp {depth} pv e2e4\n", now=now
        )
        emitted.extend(analyzed(outgoing))
        now += 0.3
    emitted.extend(analyzed(pipeline.tick(now=now + 1.0)))
    observed = [payload["depth"] for payload in emitted]
    assert observed
    assert observed == sorted(observed)
    assert observed[-1] == 9


def test_lines_split_across_chunks(pipeline) -> None:
    pipeline.process_chunk("info depth 6 multipv 2 sco", now=0.0)
    pipeline.process_chunk("re cp 12 pv d2d4\ninfo depth 6 multipv 1 ", now=0.1)
    pipeline.process_chunk("score cp 30 pv e2e4\n", now=0.2)
    payloads = analyzed(pipeline.tick(now=1.0))
    assert payloads[0]["bestMoves"] == ["e2e4", "d2d4"]
    assert payloads[0]["evaluations"] == ["0.30", "0.12"]


def test_currmove_noise_is_ignored(pipeline) -> None:
    outgoing = pipeline.process_chunk(
        "info depth 14 currmove e2e4 currmovenumber 1\n", now=0.0
    )
    assert outgoing == []
    assert pipeline.coalescer.held is None


def test_new_position_discards_buffer_entries_and_window(pipeline) -> None:
    pipeline.process_chunk("info depth 12 score cp 20 pv e2e4\ninfo depth 13 sc", now=0.0)
    pipeline.apply_command("stop")
    assert pipeline.reassembler.pending == ""
    pipeline.apply_command(f"position fen {BLACK_TO_MOVE}")

    assert pipeline.aggregator.entries == []
    assert pipeline.coalescer.held is None
    assert analyzed(pipeline.tick(now=5.0)) == []

    stale = pipeline.aggregator.apply(parse_line("info depth 14 score cp 25 pv e2e4", True))
    assert stale is None


def test_old_search_output_after_new_position_is_never_emitted(pipeline) -> None:
    pipeline.process_chunk("info depth 20 score cp 20 pv e2e4\n", now=0.0)
    pipeline.apply_command("stop")
    pipeline.apply_command(f"position fen {BLACK_TO_MOVE}")
    assert pipeline.abandoned_searches == 1

    late = pipeline.process_chunk(
        "info depth 21 score cp 20 pv e2e4\nbestmove e2e4\n", now=1.0
    )
    assert analyzed(late) == []
    assert analyzed(pipeline.tick(now=5.0)) == []
    assert pipeline.aggregator.entries == []
    assert pipeline.abandoned_searches == 0

    pipeline.apply_command("go depth 5")
    outgoing = pipeline.process_chunk(
        "info depth 5 score cp 30 pv e7e5\nbestmove e7e5\n", now=6.0
    )
    payloads = analyzed(outgoing)
    assert [payload["type"] for payload in payloads] == ["info", "bestmove"]
    assert payloads[0]["evaluations"] == ["-0.30"]
    assert payloads[0]["fen"] == BLACK_TO_MOVE
    assert payloads[1] == {"type": "bestmove", "move": "e7e5", "fen": BLACK_TO_MOVE}


def test_new_position_without_stop_abandons_running_search(pipeline) -> None:
    pipeline.apply_command("go depth 30")
    assert pipeline.searching
    pipeline.apply_command(f"position fen {BLACK_TO_MOVE}")
    pipeline.apply_command("go depth 10")

    outgoing = pipeline.process_chunk(
        "info depth 30 score cp 11 pv d2d4\nbestmove d2d4\n"
        "info depth 1 score cp 15 pv c7c5\nbestmove c7c5\n",
        now=0.0,
    )
    payloads = analyzed(outgoing)
    assert [payload["type"] for payload in payloads] == ["info", "bestmove"]
    assert payloads[0]["bestMoves"] == ["c7c5"]
    assert payloads[1]["move"] == "c7c5"


def test_plain_stop_still_delivers_bestmove(pipeline) -> None:
    pipeline.apply_command("go infinite")
    pipeline.process_chunk("info depth 7 score cp 12 pv e2e4\n", now=0.0)
    pipeline.apply_command("stop")
    payloads = analyzed(pipeline.process_chunk("bestmove e2e4\n", now=0.1))
    assert [payload["type"] for payload in payloads] == ["info", "bestmove"]
    assert payloads[1]["move"] == "e2e4"
    assert pipeline.searching is False


def test_cut_off_bestmove_in_cleared_tail_closes_search(pipeline) -> None:
    pipeline.apply_command("go depth 12")
    pipeline.process_chunk("info depth 12 score cp 5 pv e2e4\nbestm", now=0.0)
    pipeline.apply_command("stop")
    pipeline.apply_command(f"position fen {BLACK_TO_MOVE}")
    assert pipeline.abandoned_searches == 0
    assert pipeline.searching is False

    pipeline.apply_command("go depth 3")
    assert analyzed(pipeline.process_chunk("ove e2e4\n", now=1.0)) == []
    outgoing = pipeline.process_chunk("bestmove g8f6\n", now=1.1)
    assert analyzed(outgoing) == [
        {"type": "bestmove", "move": "g8f6", "fen": BLACK_TO_MOVE}
    ]


def test_discarded_bestmove_still_closes_its_search(pipeline) -> None:
    pipeline.apply_command("go depth 12")
    pipeline.process_chunk("info depth 12 score cp 5 pv e2e4\n", now=0.0)
    pipeline.discard_chunk("info depth 13 score cp 6 pv e2e4\nbestmove e2e4\n")
    pipeline.apply_command("stop")
    assert pipeline.searching is False
    assert pipeline.aggregator.entries == []

    pipeline.apply_command(f"position fen {BLACK_TO_MOVE}")
    assert pipeline.abandoned_searches == 0
    pipeline.apply_command("go depth 1")
    outgoing = pipeline.process_chunk("bestmove e7e5\n", now=1.0)
    assert analyzed(outgoing)[-1]["move"] == "e7e5"


def test_raw_output_is_passed_through_when_enabled() -> None:
    pipeline = AnalysisPipeline(window_ms=500, reporting_level=ReportingLevel.QUIET)
    outgoing = pipeline.process_chunk("uciok\nreadyok\nbestmove e2e4\n", now=0.0)
    assert outgoing == [
        (OUTPUT_EVENT, "uciok"),
        (OUTPUT_EVENT, "readyok"),
        (OUTPUT_EVENT, "bestmove e2e4"),
        (ANALYZED_OUTPUT_EVENT, {"type": "bestmove", "move": "e2e4", "fen": ""}),
    ]


def test_window_emits_after_new_position_same_fen(pipeline) -> None:
    pipeline.apply_command(f"position fen {NEW_FEN} moves f1c4")
    pipeline.process_chunk("info depth 3 score cp 40 pv f1c4\n", now=1.0)
    payloads = analyzed(pipeline.tick(now=1.5))
    assert payloads[0]["fen"] == NEW_FEN
