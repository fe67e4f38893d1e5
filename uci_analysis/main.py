# MAIN
import argparse
import os
import shutil
import sys
import threading
from typing import Any, Dict, Optional

import chess

from .commands import AnalysisOptions
from .engine_process import SubprocessEngine
from .events import ListenerHub
from .session import AnalysisSession, SessionConfig
from .utils import ReportingLevel, info_text, received_text


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Run one engine analysis and print the coalesced event stream"
    )
    parser.add_argument(
        "--engine", required=True, help="Path to the UCI engine executable or script"
    )
    parser.add_argument(
        "-fen", help="Analyse the given FEN instead of the starting position"
    )
    parser.add_argument("--depth", type=int, default=20, help="Search depth (default 20)")
    parser.add_argument("--multipv", type=int, default=1, help="Number of lines to track")
    parser.add_argument("--movetime", type=int, help="Optional movetime limit in ms")
    parser.add_argument("--nodes", type=int, help="Optional node limit")
    parser.add_argument(
        "--window-ms",
        dest="window_ms",
        type=int,
        default=500,
        help="Coalescing window for info events in ms (default 500)",
    )
    parser.add_argument(
        "--raw", action="store_true", help="Also print every raw engine line"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=120.0,
        help="Give up waiting for bestmove after this many seconds",
    )
    parser.add_argument("-dev", action="store_true", help="Enable debug mode")
    return parser.parse_args(argv)


def format_info_payload(payload: Dict[str, Any]) -> str:
    rows = [f"depth {payload['depth']}"]
    for index, (evaluation, line) in enumerate(
        zip(payload["evaluations"], payload["lines"]), start=1
    ):
        rows.append(f"  #{index} {evaluation:>7}  {line}")
    return "\n".join(rows)


def format_bestmove_payload(payload: Dict[str, Any]) -> str:
    text = f"bestmove {payload['move']}"
    if payload.get("ponder"):
        text += f" (ponder {payload['ponder']})"
    return text


def run_analysis(args) -> int:
    board = chess.Board(args.fen) if args.fen else chess.Board()
    reporting_level = ReportingLevel.VERBOSE if args.dev else ReportingLevel.BASIC
    engine_path = os.path.abspath(shutil.which(args.engine) or args.engine)
    if not os.path.exists(engine_path):
        print(info_text(f"Engine not found: {engine_path}"))
        return 2

    done = threading.Event()
    hub = ListenerHub()

    def on_analysis(payload: Dict[str, Any]) -> None:
        if payload.get("type") == "info":
            print(info_text(format_info_payload(payload)))

    def on_bestmove(payload: Dict[str, Any]) -> None:
        print(info_text(format_bestmove_payload(payload)))
        done.set()

    hub.add_analysis_listener(on_analysis)
    hub.add_bestmove_listener(on_bestmove)
    if args.raw and not args.dev:
        hub.add_message_listener(lambda line: print(received_text(line)))

    engine = SubprocessEngine(engine_path, workdir=os.path.dirname(engine_path))
    session = AnalysisSession(
        engine,
        hub.emit,
        config=SessionConfig(coalesce_window_ms=args.window_ms, emit_raw_output=args.raw),
        reporting_level=reporting_level,
    )
    options = AnalysisOptions(
        depth=args.depth,
        multipv=args.multipv,
        movetime=args.movetime,
        nodes=args.nodes,
    )

    try:
        if not session.analyze_position(board, options):
            print(info_text("Failed to start analysis"))
            return 1
        if not done.wait(timeout=args.timeout):
            print(info_text("Timed out waiting for bestmove; stopping engine"))
            session.stop_analysis()
            done.wait(timeout=2.0)
    except KeyboardInterrupt:
        print(info_text("Analysis interrupted by user"))
        session.stop_analysis()
    finally:
        session.shutdown()
        hub.clear()
    return 0 if done.is_set() else 1


def main(argv: Optional[list] = None) -> None:
    args = parse_args(argv)
    sys.exit(run_analysis(args))


if __name__ == "__main__":
    main()
