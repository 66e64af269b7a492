"""Run reporting: events emitted by the orchestrator and their console rendering.

The orchestrator only knows the ``Reporter`` interface. Whether output is
colored or animated is decided once, when the console adapters are built.
"""

import os
import sys
from abc import ABC, abstractmethod
from enum import Enum
from typing import TextIO

from pydantic import BaseModel

from mchk.waiter import WaitObserver


class EventKind(str, Enum):
    """Things worth telling the user about during a run."""

    TEST_STARTED = "test_started"
    SEND_STARTED = "send_started"
    SEND_SUCCEEDED = "send_succeeded"
    SEND_FAILED = "send_failed"
    WAIT_STARTED = "wait_started"
    WAIT_FINISHED = "wait_finished"
    VERIFY_STARTED = "verify_started"
    VERIFY_FOUND = "verify_found"
    VERIFY_NOT_FOUND = "verify_not_found"
    VERIFY_AMBIGUOUS = "verify_ambiguous"
    VERIFY_ERROR = "verify_error"
    TEST_PASSED = "test_passed"
    TEST_FAILED = "test_failed"
    RUN_ABORTED = "run_aborted"
    RUN_FINISHED = "run_finished"


class ReportEvent(BaseModel):
    """One report line's worth of information.

    ``expected`` tells whether the step's result agrees with the test's
    expectation; it is None for events that carry no verdict.
    """

    kind: EventKind
    test: str = ""
    expected: bool | None = None
    error: str | None = None
    target: str | None = None
    sender: str | None = None
    recipient: str | None = None
    seconds: int | None = None
    matches: int | None = None
    passed: int | None = None
    failed: int | None = None
    skipped: int | None = None


class Reporter(ABC):
    """Sink for run events."""

    @abstractmethod
    def report(self, event: ReportEvent) -> None:
        """Record or display one event."""
        ...


class Palette(BaseModel):
    """ANSI escapes; all empty when color is off."""

    reset: str = ""
    red: str = ""
    green: str = ""
    yellow: str = ""

    @classmethod
    def ansi(cls) -> "Palette":
        return cls(reset="\033[0m", red="\033[31m", green="\033[32m", yellow="\033[33m")


def is_interactive(stream: TextIO) -> bool:
    """Whether ``stream`` is attached to a terminal."""
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def supports_color(stream: TextIO) -> bool:
    """Color only on a non-Windows terminal, and never when NO_COLOR is set."""
    if sys.platform == "win32" or "NO_COLOR" in os.environ:
        return False
    return is_interactive(stream)


def _seconds(n: int) -> str:
    return f"{n} second" if n == 1 else f"{n} seconds"


class ConsoleReporter(Reporter):
    """Line-oriented human-readable report.

    Step start events leave the line open so that the verdict mark lands on
    the same line.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        color: bool = False,
        interactive: bool = False,
    ) -> None:
        self._stream = stream or sys.stdout
        self._palette = Palette.ansi() if color else Palette()
        self._interactive = interactive

    @property
    def ok(self) -> str:
        return f"{self._palette.green}✔{self._palette.reset}"

    @property
    def fail(self) -> str:
        return f"{self._palette.red}✖{self._palette.reset}"

    def _write(self, text: str, end: str = "\n") -> None:
        self._stream.write(text + end)
        self._stream.flush()

    def report(self, event: ReportEvent) -> None:
        p = self._palette
        kind = event.kind

        if kind is EventKind.TEST_STARTED:
            self._write(f'Running test "{event.test}"...')
        elif kind is EventKind.SEND_STARTED:
            self._write(
                f"Sending message through {event.target} from {event.sender} to: {event.recipient}... ",
                end="",
            )
        elif kind is EventKind.SEND_SUCCEEDED:
            if event.expected:
                self._write(self.ok)
            else:
                self._write(f"{p.yellow}sent, although sending was expected to fail{p.reset}")
        elif kind is EventKind.SEND_FAILED:
            self._write(self.fail)
            self._write(str(event.error))
            if event.expected:
                self._write(f"Sending failed as expected {self.ok}")
        elif kind is EventKind.WAIT_STARTED:
            self._write(f"Waiting for {_seconds(event.seconds or 0)}... ", end="")
        elif kind is EventKind.WAIT_FINISHED:
            if self._interactive:
                self._write(f"\r{_seconds(event.seconds or 0)} passed. {self.ok}             ")
            else:
                self._write(self.ok)
        elif kind is EventKind.VERIFY_STARTED:
            self._write(f"Connecting to IMAP server {event.target}... ", end="")
        elif kind is EventKind.VERIFY_FOUND:
            self._write(self.ok)
            if event.expected:
                self._write(f"Message successfully received {self.ok}")
            else:
                self._write(f"{p.red}Message arrived although it should not have {self.fail}{p.reset}")
        elif kind is EventKind.VERIFY_NOT_FOUND:
            self._write(self.ok)
            if event.expected:
                self._write(f"Test message not found in INBOX as expected {self.ok}")
            else:
                self._write(f"{p.red}Sent message not found on {event.target} {self.fail}{p.reset}")
        elif kind is EventKind.VERIFY_AMBIGUOUS:
            self._write(self.ok)
            self._write(
                f"{p.red}Found {event.matches} messages carrying the probe token, "
                f"mailbox holds stale probes {self.fail}{p.reset}"
            )
        elif kind is EventKind.VERIFY_ERROR:
            self._write(self.fail)
            self._write(f"{p.red}{event.error}{p.reset}")
        elif kind is EventKind.TEST_PASSED:
            self._write(f"Test '{event.test}' passed {self.ok}")
        elif kind is EventKind.TEST_FAILED:
            self._write(f"{p.red}Test '{event.test}' failed {self.fail}{p.reset}")
        elif kind is EventKind.RUN_ABORTED:
            self._write(
                f"{p.red}Stopping after failed test '{event.test}'; "
                f"{event.skipped} remaining test(s) skipped{p.reset}"
            )
        elif kind is EventKind.RUN_FINISHED:
            summary = f"{event.passed} passed, {event.failed} failed"
            if event.skipped:
                summary += f", {event.skipped} skipped"
            self._write(summary)


class SpinnerObserver(WaitObserver):
    """Braille spinner redrawn on each wait tick; terminals only."""

    FRAMES = ("⣾", "⣽", "⣻", "⢿", "⡿", "⣟", "⣯", "⣷")

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout
        self._frame = 0

    def on_tick(self, elapsed: float, total: int) -> None:
        frame = self.FRAMES[self._frame % len(self.FRAMES)]
        self._frame += 1
        self._stream.write(f"\rWaiting for {_seconds(total)}... {frame} ")
        self._stream.flush()
