"""Turns result rows into text in one of the output modes"""

from __future__ import annotations

import dataclasses
import math
import re
from typing import Any

from .session import MAX_COLUMNS, Mode, Session

DEFAULT_WIDTH = 10

# SQLite fundamental datatypes
SQLITE_INTEGER = 1
SQLITE_FLOAT = 2
SQLITE_TEXT = 3
SQLITE_BLOB = 4
SQLITE_NULL = 5


@dataclasses.dataclass(frozen=True)
class Row:
    "One result row as handed to the renderer"
    columns: tuple[str, ...]
    "Column names"
    values: tuple[Any, ...]
    "Values from the engine with None for NULL"
    types: tuple[int, ...] | None = None
    "``SQLITE_INTEGER`` etc per value, or None if unknown"
    index: int = 0
    "Position of this row within its statement's results"


def value_type(v: Any) -> int:
    "Storage class SQLite used for a returned value"
    if v is None:
        return SQLITE_NULL
    if isinstance(v, int):
        return SQLITE_INTEGER
    if isinstance(v, float):
        return SQLITE_FLOAT
    if isinstance(v, (bytes, bytearray, memoryview)):
        return SQLITE_BLOB
    return SQLITE_TEXT


def make_row(columns, values, index=0) -> Row:
    return Row(tuple(columns), tuple(values), tuple(value_type(v) for v in values), index)


def float_text(v: float) -> str:
    "Formats a float the way SQLite converts REAL to TEXT"
    if math.isinf(v):
        return "Inf" if v > 0 else "-Inf"
    s = "%.15g" % (v, )
    if "e" in s:
        mantissa, exponent = s.split("e")
        if "." not in mantissa:
            mantissa += ".0"
        return mantissa + "e" + exponent
    if "." not in s:
        s += ".0"
    return s


def value_text(v: Any) -> str | None:
    "Text of a value as sqlite3_column_text would give it"
    if v is None:
        return None
    if isinstance(v, str):
        return v
    if isinstance(v, float):
        return float_text(v)
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).decode("utf8", "replace")
    return str(v)


_number_re = re.compile(r"[-+]?[0-9]+(\.[0-9]+)?([eE][-+]?[0-9]+)?\Z", re.ASCII)


def is_number(s: str) -> bool:
    "Does s look like an integer or real literal"
    return bool(_number_re.match(s))


def quote_string(s: str) -> str:
    "SQL single quoted literal"
    return "'" + s.replace("'", "''") + "'"


def quote_table_name(name: str) -> str:
    """Destination table name for insert mode.  It is single quoted
    if anything other than letters, digits and underscore is present or
    it doesn't start with a letter or underscore."""
    need_quote = not name or not (name[0].isascii() and (name[0].isalpha() or name[0] == "_"))
    if re.search(r"[^A-Za-z0-9_]", name):
        need_quote = True
    return quote_string(name) if need_quote else name


def html_escape(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;") \
        .replace('"', "&quot;").replace("'", "&#39;")


_c_escapes = {"\\": "\\\\", '"': '\\"', "\t": "\\t", "\n": "\\n", "\r": "\\r"}


def c_string(s: str) -> str:
    "Quoted according to C/TCL rules"
    out = ['"']
    for c in s:
        if c in _c_escapes:
            out.append(_c_escapes[c])
        elif 32 <= ord(c) < 127:
            out.append(c)
        else:
            out.extend("\\%03o" % (b, ) for b in c.encode("utf8"))
    out.append('"')
    return "".join(out)


def csv_needs_quote(s: str, separator: str) -> bool:
    if separator and separator in s:
        return True
    for c in s:
        o = ord(c)
        if c == '"' or o < 32 or o >= 127:
            return True
    return False


def csv_field(s: str | None, session: Session) -> str:
    if s is None:
        return session.nullvalue
    if csv_needs_quote(s, session.separator):
        return '"' + s.replace('"', '""') + '"'
    return s


def sql_literal(v: Any, vtype: int | None) -> str:
    "A value as it would appear in an INSERT statement"
    if v is None or vtype == SQLITE_NULL:
        return "NULL"
    if vtype == SQLITE_BLOB:
        return "X'" + bytes(v).hex() + "'"
    text = value_text(v)
    if vtype == SQLITE_TEXT:
        return quote_string(text)
    if vtype in (SQLITE_INTEGER, SQLITE_FLOAT) or is_number(text):
        return text
    return quote_string(text)


class Renderer:
    """Writes rows to the session output in the session's mode.

    The header, where the mode has one, is written alongside the first
    row of each statement.  Column widths are worked out from that
    first row and kept for the rest of the statement."""

    def __init__(self, session: Session):
        self.session = session
        self.actual_widths: list[int] = []

    def __call__(self, row: Row) -> bool:
        getattr(self, "output_" + self.session.mode.value)(row)
        return False

    def write(self, text: str) -> None:
        self.session.output.write(text)

    def _texts(self, row: Row) -> list[str]:
        nullvalue = self.session.nullvalue
        return [nullvalue if t is None else t for t in map(value_text, row.values)]

    def output_line(self, row: Row) -> None:
        w = max([5] + [len(c) for c in row.columns])
        if row.index > 0:
            self.write("\n")
        for name, text in zip(row.columns, self._texts(row)):
            self.write("%*s = %s\n" % (w, name, text))

    def _compute_widths(self, row: Row, texts: list[str]) -> list[int]:
        widths = []
        for i, name in enumerate(row.columns):
            w = self.session.width(i)
            if w == 0:
                w = max(DEFAULT_WIDTH, len(name), len(texts[i]))
            widths.append(w)
        return widths

    @staticmethod
    def _pad(text: str, w: int, truncate: bool = True) -> str:
        if truncate:
            text = text[:abs(w)]
        return text.rjust(-w) if w < 0 else text.ljust(w)

    def output_column(self, row: Row) -> None:
        explain = self.session.mode is Mode.explain
        texts = self._texts(row)
        if row.index == 0:
            widths = self._compute_widths(row, texts)
            self.actual_widths = widths[:MAX_COLUMNS]
            if self.session.header:
                self.write("  ".join(self._pad(name, widths[i]) for i, name in enumerate(row.columns)) + "\n")
                self.write("  ".join("-" * abs(self._width(i)) for i in range(len(row.columns))) + "\n")
        cells = []
        for i, text in enumerate(texts):
            w = self._width(i)
            if explain and len(text) > abs(w):
                w = len(text) if w >= 0 else -len(text)
                if i < len(self.actual_widths):
                    self.actual_widths[i] = w
            cells.append(self._pad(text, w))
        self.write("  ".join(cells) + "\n")

    output_explain = output_column

    def _width(self, i: int) -> int:
        if i < len(self.actual_widths):
            return self.actual_widths[i]
        return DEFAULT_WIDTH

    def output_list(self, row: Row) -> None:
        sep = self.session.separator
        if row.index == 0 and self.session.header:
            self.write(sep.join(row.columns) + "\n")
        end = ";\n" if self.session.mode is Mode.semi else "\n"
        self.write(sep.join(self._texts(row)) + end)

    output_semi = output_list

    def output_html(self, row: Row) -> None:
        if row.index == 0 and self.session.header:
            self.write("<TR>" + "".join("<TH>%s</TH>\n" % (html_escape(c), ) for c in row.columns) + "</TR>\n")
        self.write("<TR>" + "".join("<TD>%s</TD>\n" % (html_escape(t), ) for t in self._texts(row)) + "</TR>\n")

    def output_tcl(self, row: Row) -> None:
        sep = self.session.separator
        if row.index == 0 and self.session.header:
            self.write(sep.join(c_string(c) for c in row.columns) + "\n")
        self.write(sep.join(c_string(t) for t in self._texts(row)) + "\n")

    def output_csv(self, row: Row) -> None:
        sep = self.session.separator
        if row.index == 0 and self.session.header:
            self.write(sep.join(csv_field(c, self.session) for c in row.columns) + "\n")
        self.write(sep.join(csv_field(value_text(v), self.session) for v in row.values) + "\n")

    def output_insert(self, row: Row) -> None:
        types = row.types or (None, ) * len(row.values)
        values = ",".join(sql_literal(v, t) for v, t in zip(row.values, types))
        self.write("INSERT INTO %s VALUES(%s);\n" % (self.session.table or "table", values))
