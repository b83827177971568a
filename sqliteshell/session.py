"""Session state shared by the dispatcher, execution pipeline and
renderer, plus the writable destinations output can be sent to."""

from __future__ import annotations

import dataclasses
import enum
import logging
import subprocess
import sys
from typing import TextIO

logger = logging.getLogger(__name__)

MAX_COLUMNS = 100
"Capacity of the column width table"


class Error(Exception):
    """Raised for problems the user should be told about.  The message
    is shown as text, so there are no subclasses."""
    pass


class Mode(enum.Enum):
    "Output rendering modes"
    line = "line"
    column = "column"
    list = "list"
    semi = "semi"
    html = "html"
    insert = "insert"
    tcl = "tcl"
    csv = "csv"
    explain = "explain"


class StreamSink:
    """An already open stream such as stdout.  Closing does nothing as
    the stream belongs to someone else."""

    def __init__(self, stream: TextIO, name: str):
        self.stream = stream
        self.name = name

    def write(self, text: str) -> None:
        self.stream.write(text)

    def flush(self) -> None:
        self.stream.flush()

    def close(self) -> None:
        pass


class FileSink(StreamSink):
    "A file opened for writing, closed with the sink"

    def __init__(self, filename: str, encoding: str = "utf8"):
        try:
            f = open(filename, "w", encoding=encoding, newline="")
        except OSError:
            raise Error(f'cannot open "{ filename }"')
        super().__init__(f, filename)

    def close(self) -> None:
        self.stream.close()


class PipeSink(StreamSink):
    "Output is fed to the standard input of a shell command"

    def __init__(self, command: str, encoding: str = "utf8"):
        try:
            self.process = subprocess.Popen(command, shell=True, stdin=subprocess.PIPE, encoding=encoding)
        except OSError:
            raise Error(f'cannot open pipe "{ command }"')
        super().__init__(self.process.stdin, "|" + command)

    def close(self) -> None:
        self.stream.close()
        self.process.wait()


def open_sink(name: str, stdout: TextIO, stderr: TextIO) -> StreamSink | None:
    """Opens a log or trace destination.  ``stdout`` and ``stderr``
    are the streams of that name, ``off`` gives None and anything else
    is a filename."""
    if name == "stdout":
        return StreamSink(stdout, "stdout")
    if name == "stderr":
        return StreamSink(stderr, "stderr")
    if name == "off":
        return None
    return FileSink(name)


@dataclasses.dataclass
class ExplainSnapshot:
    "Settings saved by .explain so they can be put back afterwards"
    mode: Mode
    header: bool
    widths: list[int]


@dataclasses.dataclass
class Session:
    """Everything that controls how input is executed and rendered.

    Only the meta-command dispatcher changes these fields.  Rendering
    of a statement's results is fully determined by :attr:`mode` and
    :attr:`widths` when it starts."""
    output: StreamSink
    mode: Mode = Mode.list
    widths: list[int] = dataclasses.field(default_factory=list)
    separator: str = "|"
    nullvalue: str = ""
    header: bool = False
    echo: bool = False
    stats: bool = False
    bail: bool = False
    timer: bool = False
    # destination for insert mode, already quoted
    table: str | None = None
    trace: StreamSink | None = None
    log: StreamSink | None = None
    explain_prev: ExplainSnapshot | None = None
    # cursor of the statement currently being stepped
    statement: object | None = None
    main_prompt: str = "sqlite> "
    continue_prompt: str = "   ...> "

    def snapshot(self, **changes) -> Session:
        """Returns a copy with changes applied, sharing the sinks.
        Used to run internal queries with different rendering
        without disturbing this session."""
        changes.setdefault("widths", list(self.widths))
        return dataclasses.replace(self, **changes)

    def width(self, i: int) -> int:
        "Configured width for column i with 0 meaning automatic"
        if i < len(self.widths) and i < MAX_COLUMNS:
            return self.widths[i]
        return 0

    def set_output(self, sink: StreamSink) -> None:
        "Installs a new output sink, closing the previous one"
        old, self.output = self.output, sink
        if old is not sink:
            logger.debug("output switched from %s to %s", old.name, sink.name)
            old.close()

    def set_trace(self, sink: StreamSink | None) -> None:
        if self.trace is not None:
            self.trace.close()
        self.trace = sink

    def set_log(self, sink: StreamSink | None) -> None:
        if self.log is not None:
            self.log.close()
        self.log = sink

    def close(self) -> None:
        "Closes every sink owned by the session"
        self.set_trace(None)
        self.set_log(None)
        self.output.close()
        self.table = None


def stdout_sink(stream: TextIO | None = None) -> StreamSink:
    return StreamSink(stream or sys.stdout, "stdout")


def error_message(e: BaseException) -> str:
    "Text of an exception without the class name apsw puts in front"
    text = str(e)
    prefix = type(e).__name__ + ": "
    if text.startswith(prefix):
        text = text[len(prefix):]
    return text
