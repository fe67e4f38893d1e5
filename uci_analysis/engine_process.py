"""Engine process collaborator: a UCI engine behind stdin/stdout pipes."""

from __future__ import annotations

import codecs
import os
import queue
import subprocess
import sys
import threading
from typing import List, Optional, Protocol, Sequence

READ_SIZE = 4096


class EngineError(RuntimeError):
    """Engine process lifecycle failure."""


class EngineStartError(EngineError):
    pass


class EngineWriteError(EngineError):
    pass


class EngineProcess(Protocol):
    """What the analysis session needs from an engine process.

    ``read_chunk`` must not reorder output and should return ``None``
    promptly when nothing is available, so the session can keep its
    coalescing deadline and observe shutdown.
    """

    def start(self) -> None:
        ...

    def write_line(self, command: str) -> None:
        ...

    def read_chunk(self) -> Optional[str]:
        ...

    def stop(self, timeout: float = 2.0) -> None:
        ...


def engine_command(path: str, args: Sequence[str] = ()) -> List[str]:
    """Python engine scripts run under the current interpreter."""
    if path.endswith(".py"):
        return [sys.executable, path, *args]
    return [path, *args]


class SubprocessEngine:
    """Runs an engine with ``subprocess`` and pumps raw stdout chunks.

    A daemon pump thread reads unframed bytes from the pipe and decodes them
    incrementally, so chunks may end mid-line (or mid-character on the byte
    level); line framing is left to the session.
    """

    def __init__(
        self,
        path: str,
        *,
        args: Sequence[str] = (),
        workdir: Optional[str] = None,
        read_timeout: float = 0.0,
    ) -> None:
        self.path = path
        self._command = engine_command(path, args)
        self._workdir = workdir
        self._read_timeout = read_timeout
        self._proc: Optional[subprocess.Popen] = None
        self._chunks: "queue.Queue[str]" = queue.Queue()
        self._pump_thread: Optional[threading.Thread] = None
        self._write_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def start(self) -> None:
        if self._proc is not None:
            return
        try:
            self._proc = subprocess.Popen(
                self._command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                cwd=self._workdir,
                bufsize=0,
            )
        except OSError as exc:
            raise EngineStartError(f"Failed to start engine {self.path}: {exc}") from exc
        # output left over from a previous process never reaches this one
        self._chunks = queue.Queue()
        self._pump_thread = threading.Thread(
            target=self._pump_stdout,
            args=(self._proc, self._chunks),
            name="engine-stdout",
            daemon=True,
        )
        self._pump_thread.start()

    def write_line(self, command: str) -> None:
        with self._write_lock:
            if self._proc is None or self._proc.stdin is None:
                raise EngineWriteError("Engine process is not running")
            try:
                self._proc.stdin.write((command + "\n").encode("utf-8"))
                self._proc.stdin.flush()
            except (BrokenPipeError, OSError, ValueError) as exc:
                raise EngineWriteError(f"Failed to write to engine: {exc}") from exc

    def read_chunk(self) -> Optional[str]:
        try:
            if self._read_timeout > 0:
                return self._chunks.get(timeout=self._read_timeout)
            return self._chunks.get_nowait()
        except queue.Empty:
            return None

    def poll(self) -> Optional[int]:
        if self._proc is None:
            return None
        return self._proc.poll()

    def stop(self, timeout: float = 2.0) -> None:
        proc = self._proc
        if proc is None:
            return
        with self._write_lock:
            if proc.stdin:
                try:
                    proc.stdin.close()
                except OSError:
                    pass
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.terminate()
            try:
                proc.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                proc.kill()
                try:
                    proc.wait(timeout=1.0)
                except subprocess.TimeoutExpired:
                    pass
        if self._pump_thread is not None:
            self._pump_thread.join(timeout=1.0)
            self._pump_thread = None
        if proc.stdout:
            try:
                proc.stdout.close()
            except OSError:
                pass
        self._proc = None

    def _pump_stdout(self, proc: subprocess.Popen, chunks: "queue.Queue[str]") -> None:
        if proc.stdout is None:
            return
        fd = proc.stdout.fileno()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            try:
                data = os.read(fd, READ_SIZE)
            except OSError:
                break
            if not data:
                break
            text = decoder.decode(data)
            if text:
                chunks.put(text)
        tail = decoder.decode(b"", final=True)
        if tail:
            chunks.put(tail)
