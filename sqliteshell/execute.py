"""Runs SQL text one statement at a time, handing rows to a callback"""

from __future__ import annotations

import contextlib
import logging
from typing import Callable

import apsw

from .render import Row, value_type
from .scanner import is_all_whitespace
from .session import Session

logger = logging.getLogger(__name__)

RowCallback = Callable[[Row], bool]


def next_statement(sql: str) -> tuple[str, str]:
    """Splits off the first statement in sql, returning it and the
    remaining text.  SQLite's tokenizer decides where statements end
    so semicolons in literals, identifiers and comments are skipped
    over.  Without a terminated statement all of sql is returned."""
    pos = sql.find(";")
    while pos >= 0:
        if apsw.complete(sql[:pos + 1]):
            return sql[:pos + 1], sql[pos + 1:]
        pos = sql.find(";", pos + 1)
    return sql, ""


def column_count(db: apsw.Connection, sql: str, bindings: tuple = ()) -> int:
    """Number of result columns sql would produce, without running it.
    Placeholders in sql need values in bindings even though they are
    never used."""
    cur = db.cursor()
    count = 0

    def et(cursor, statement, bindings):
        nonlocal count
        count = len(cursor.get_description())
        return False

    cur.exec_trace = et
    try:
        cur.execute(sql, bindings)
    except apsw.ExecTraceAbort:
        pass
    return count


class _StatementStatus:
    "Collects the statement counters SQLite reports when a statement completes"

    def __init__(self, db: apsw.Connection):
        self.db = db
        self.stmt_status: dict[str, int] = {}

    def __enter__(self):
        self.db.trace_v2(apsw.SQLITE_TRACE_PROFILE, self._profile, id=self)
        return self

    def _profile(self, event):
        for k, v in event["stmt_status"].items():
            self.stmt_status[k] = v + self.stmt_status.get(k, 0)

    def __exit__(self, *_):
        self.db.trace_v2(0, None, id=self)


def shell_exec(db: apsw.Connection,
               sql: str,
               callback: RowCallback | None,
               session: Session,
               on_error: Callable[[apsw.Error], None] | None = None) -> int:
    """Executes each statement in sql in turn, returning how many failed.

    Every result row is passed to callback as a :class:`Row`.  If the
    callback returns True the rest of that statement's rows are
    skipped, which is not an error.

    A failing statement abandons its remaining rows and nothing after
    it in sql is run.  Without on_error the :class:`apsw.Error` is
    raised, otherwise on_error is called with it and 1 is returned."""
    errors = 0
    while sql.strip():
        query, sql = next_statement(sql)
        # comments, whitespace and empty statements
        if is_all_whitespace(query.replace(";", " ")):
            continue

        cur = db.cursor()
        session.statement = cur
        try:
            if session.echo:
                session.output.write(query.strip() + "\n")
            with _StatementStatus(db) if session.stats else contextlib.nullcontext() as status:
                _step_all(cur, query, callback)
            if status is not None:
                display_stats(db, session, stmt_status=status.stmt_status)
        except apsw.Error as e:
            if on_error is None:
                raise
            errors += 1
            logger.debug("statement failed: %r", query)
            on_error(e)
            break
        finally:
            session.statement = None
    return errors


def _step_all(cur: apsw.Cursor, query: str, callback: RowCallback | None) -> None:
    columns = None
    for index, values in enumerate(cur.execute(query)):
        if callback is None:
            continue
        if columns is None:
            columns = tuple(name for name, _ in cur.get_description())
        row = Row(columns, values, tuple(value_type(v) for v in values), index)
        if callback(row):
            logger.debug("row callback stopped statement after %d rows", index + 1)
            cur.close(True)
            return


def display_stats(db: apsw.Connection | None, session: Session, reset: bool = False,
                  stmt_status: dict[str, int] | None = None) -> None:
    "Writes memory, cache and statement counters to the session output"
    out = session.output

    def line(label, text):
        out.write("%-37s%s\n" % (label + ":", text))

    cur, hw = apsw.status(apsw.SQLITE_STATUS_MEMORY_USED, reset)
    line("Memory Used", "%d (max %d) bytes" % (cur, hw))
    cur, hw = apsw.status(apsw.SQLITE_STATUS_MALLOC_COUNT, reset)
    line("Number of Outstanding Allocations", "%d (max %d)" % (cur, hw))
    cur, hw = apsw.status(apsw.SQLITE_STATUS_PAGECACHE_OVERFLOW, reset)
    line("Number of Pcache Overflow Bytes", "%d (max %d) bytes" % (cur, hw))
    line("Largest Allocation", "%d bytes" % apsw.status(apsw.SQLITE_STATUS_MALLOC_SIZE, reset)[1])
    line("Largest Pcache Allocation", "%d bytes" % apsw.status(apsw.SQLITE_STATUS_PAGECACHE_SIZE, reset)[1])

    if db is None:
        return
    line("Pager Heap Usage", "%d bytes" % db.status(apsw.SQLITE_DBSTATUS_CACHE_USED, reset)[0])
    line("Page cache hits", "%d" % db.status(apsw.SQLITE_DBSTATUS_CACHE_HIT, True)[0])
    line("Page cache misses", "%d" % db.status(apsw.SQLITE_DBSTATUS_CACHE_MISS, True)[0])
    line("Page cache writes", "%d" % db.status(apsw.SQLITE_DBSTATUS_CACHE_WRITE, True)[0])
    line("Schema Heap Usage", "%d bytes" % db.status(apsw.SQLITE_DBSTATUS_SCHEMA_USED, reset)[0])

    if stmt_status is None:
        return
    line("Fullscan Steps", "%d" % stmt_status.get("SQLITE_STMTSTATUS_FULLSCAN_STEP", 0))
    line("Sort Operations", "%d" % stmt_status.get("SQLITE_STMTSTATUS_SORT", 0))
    line("Autoindex Inserts", "%d" % stmt_status.get("SQLITE_STMTSTATUS_AUTOINDEX", 0))


def exec_immediate(db: apsw.Connection, sql: str, callback: RowCallback, bindings: tuple = ()) -> None:
    """Runs sql for internal catalog queries.  There is no echo or
    statistics and rows carry no type information."""
    cur = db.cursor()
    columns = None
    for index, values in enumerate(cur.execute(sql, bindings)):
        if columns is None:
            columns = tuple(name for name, _ in cur.get_description())
        if callback(Row(columns, values, None, index)):
            cur.close(True)
            return
