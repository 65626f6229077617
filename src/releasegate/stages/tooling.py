from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional, Sequence

from releasegate.errors import ExternalToolFailure
from releasegate.logger import get_logger

log = get_logger("releasegate.tool")


@dataclass(frozen=True)
class ToolResult:
    argv: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def command(self) -> str:
        return " ".join(shlex.quote(a) for a in self.argv)

    def tail(self, lines: int = 40) -> str:
        combined = [ln for ln in (self.stdout + "\n" + self.stderr).splitlines() if ln]
        return "\n".join(combined[-lines:])

    def require_ok(self, reason: str) -> "ToolResult":
        """Raise ExternalToolFailure unless the tool exited 0 in time."""
        if self.timed_out:
            raise ExternalToolFailure("timeout", diagnostic=self.tail(), timed_out=True)
        if self.exit_code != 0:
            raise ExternalToolFailure(
                f"{reason} (exit {self.exit_code})", diagnostic=self.tail()
            )
        return self


def _kill(proc: subprocess.Popen, flag: threading.Event) -> None:
    flag.set()
    proc.kill()


def _drain(stream: IO[str], sink: list[str], echo: bool) -> None:
    for raw in stream:
        line = raw.rstrip("\n")
        sink.append(line)
        if line:
            log.log(logging.INFO if echo else logging.DEBUG, line)


def run_tool(
    argv: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
    echo: bool = True,
) -> ToolResult:
    """
    Run an external command, streaming its output into the log.

    `echo=False` keeps the output at DEBUG (machine-readable JSON).
    A timeout kills the process and marks the result timed_out; it does not
    raise. Interrupts (cancellation) kill the child and propagate.
    """
    argv = tuple(str(a) for a in argv)
    log.debug("$ %s", " ".join(shlex.quote(a) for a in argv))

    try:
        proc = subprocess.Popen(
            argv,
            cwd=str(cwd) if cwd else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
        )
    except OSError as e:
        raise ExternalToolFailure(
            f"could not start {argv[0]}", diagnostic=str(e)
        ) from e

    timed_out = threading.Event()
    timer: Optional[threading.Timer] = None
    if timeout and timeout > 0:
        timer = threading.Timer(timeout, _kill, (proc, timed_out))
        timer.daemon = True
        timer.start()

    out_lines: list[str] = []
    err_lines: list[str] = []

    assert proc.stdout is not None and proc.stderr is not None
    err_thread = threading.Thread(
        target=_drain, args=(proc.stderr, err_lines, echo), daemon=True
    )
    err_thread.start()

    try:
        _drain(proc.stdout, out_lines, echo)
        exit_code = proc.wait()
        err_thread.join()
    finally:
        if timer is not None:
            timer.cancel()
        if proc.poll() is None:
            proc.kill()
            proc.wait()

    return ToolResult(
        argv=argv,
        exit_code=exit_code,
        stdout="\n".join(out_lines),
        stderr="\n".join(err_lines),
        timed_out=timed_out.is_set(),
    )
