"""
Line sources and output sinks for the runner.

Each interface provides:

    await next_line() -> str | None    None once input is exhausted
    write(text)                        a newline is appended when missing
    exit()                             the runner is done with the interface
"""
import asyncio
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from zing.zing_debug import dbg

BANNER = "ZingTTP: A Language for Testing HTTP Services"
PROMPT = "> "


def _terminated(text: str) -> str:
    return text if text.endswith("\n") else text + "\n"


class ReplInterface:
    """Interactive prompt on a pair of text streams (stdin/stdout by default)."""

    def __init__(self, stdin=None, stdout=None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.write(BANNER)

    async def ainput(self, prompt: str) -> str:
        loop = asyncio.get_running_loop()
        self.stdout.write(prompt)
        self.stdout.flush()
        return await loop.run_in_executor(None, self.stdin.readline)

    async def next_line(self) -> Optional[str]:
        raw = await self.ainput(PROMPT)
        if raw == "":
            return None
        return raw.rstrip("\r\n")

    def write(self, text: str):
        self.stdout.write(_terminated(text))
        self.stdout.flush()

    def exit(self):
        dbg("Leaving REPL")


class FileInterface:
    """Runs a script file, reading it one line at a time.

    Empty lines are skipped. Output is prefixed with the number of the line
    that produced it.
    """

    def __init__(self, path, out=None):
        self.path = Path(path)
        self.out = out or sys.stdout
        self.line_number = 0
        self._file = None
        self._finished = False
        dbg("Running script at", self.path)

    async def next_line(self) -> Optional[str]:
        if self._finished:
            return None
        if self._file is None:
            self._file = self.path.open("r", encoding="utf-8")

        for raw in self._file:
            self.line_number += 1
            line = raw.rstrip("\r\n")
            if line:
                return line

        self._close()
        return None

    def write(self, text: str):
        self.out.write(f"Line {self.line_number}: {_terminated(text)}")

    def exit(self):
        self._close()

    def _close(self):
        self._finished = True
        if self._file is not None:
            self._file.close()
            self._file = None
            dbg("Closed", self.path, "after", self.line_number, "lines")


class ListInterface:
    """In-memory interface for tests: feeds fixed lines and records writes."""

    def __init__(self, lines: Iterable[str]):
        self.lines: List[str] = list(lines)
        self.outputs: List[str] = []
        self.exited = False
        self._idx = 0

    async def next_line(self) -> Optional[str]:
        if self._idx >= len(self.lines):
            return None
        line = self.lines[self._idx]
        self._idx += 1
        return line

    def write(self, text: str):
        self.outputs.append(_terminated(text))

    def exit(self):
        self.exited = True
