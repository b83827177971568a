"""Produces SQL text that recreates a database's schema and content.

The output is wrapped in a transaction which is rolled back when
replayed if anything went wrong while dumping.  When SQLite reports
corruption, queries are run a second time in reverse rowid order which
can often reach rows a forward scan could not."""

from __future__ import annotations

import logging

import apsw

from .render import value_text
from .session import Session, error_message

logger = logging.getLogger(__name__)

SCHEMA_TABLES = ("SELECT name, type, sql FROM sqlite_master "
                 "WHERE sql NOT NULL AND type=='table' AND name!='sqlite_sequence'")
SCHEMA_SEQUENCE = "SELECT name, type, sql FROM sqlite_master WHERE name=='sqlite_sequence'"
SCHEMA_OTHERS = "SELECT sql FROM sqlite_master WHERE sql NOT NULL AND type IN ('index','trigger','view')"

PATTERN_TABLES = ("SELECT name, type, sql FROM sqlite_master "
                  "WHERE tbl_name LIKE ?1 AND type=='table' AND sql NOT NULL")
PATTERN_OTHERS = ("SELECT sql FROM sqlite_master WHERE sql NOT NULL "
                  "AND type IN ('index','trigger','view') AND tbl_name LIKE ?1")

REVERSE = " ORDER BY rowid DESC"


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


class SchemaDumper:
    """Dumps the database to the session output

    :param db: Connection to dump
    :param session: Supplies the output sink
    """

    def __init__(self, db: apsw.Connection, session: Session):
        self.db = db
        self.session = session
        self.errors = 0
        self.writable_schema = False

    def write(self, text: str) -> None:
        self.session.output.write(text)

    def dump(self, patterns: list[str] | None = None) -> int:
        """Writes the whole script.  patterns are LIKE patterns for
        table names with everything dumped when there are none.
        Returns how many errors were encountered."""
        self.errors = 0
        self.writable_schema = False
        self.write("PRAGMA foreign_keys=OFF;\n")
        self.write("BEGIN TRANSACTION;\n")
        self.db.cursor().execute("SAVEPOINT dump; PRAGMA writable_schema=ON")
        try:
            if not patterns:
                self.run_schema_dump_query(SCHEMA_TABLES)
                self.run_schema_dump_query(SCHEMA_SEQUENCE)
                self.run_table_dump_query(SCHEMA_OTHERS)
            else:
                for pattern in patterns:
                    self.run_schema_dump_query(PATTERN_TABLES, (pattern, ))
                    self.run_table_dump_query(PATTERN_OTHERS, bindings=(pattern, ))
        finally:
            if self.writable_schema:
                self.write("PRAGMA writable_schema=OFF;\n")
                self.writable_schema = False
            self.db.cursor().execute("PRAGMA writable_schema=OFF; RELEASE dump;")
        self.write("ROLLBACK; -- due to errors\n" if self.errors else "COMMIT;\n")
        return self.errors

    def run_schema_dump_query(self, query: str, bindings: tuple = ()) -> None:
        """Runs a catalog query, dumping each object it returns.
        Corruption causes one more attempt in reverse rowid order."""
        try:
            for name, kind, sql in self.db.cursor().execute(query, bindings):
                self.dump_object(name, kind, sql)
        except apsw.CorruptError as e:
            logger.debug("corruption running %r, retrying in reverse", query)
            self.write("/****** CORRUPTION ERROR *******/\n")
            self.write("/****** %s ******/\n" % (error_message(e), ))
            try:
                for name, kind, sql in self.db.cursor().execute(query + REVERSE, bindings):
                    self.dump_object(name, kind, sql)
            except apsw.Error as e2:
                self.write("/****** ERROR: %s ******/\n" % (error_message(e2), ))
                self.errors += 1
        except apsw.Error as e:
            self.write("/****** ERROR: %s ******/\n" % (error_message(e), ))
            self.errors += 1

    def dump_object(self, name: str, kind: str, sql: str) -> None:
        "Writes the SQL recreating one catalog object, and a table's content"
        first_row = None
        if name == "sqlite_sequence":
            first_row = "DELETE FROM sqlite_sequence;\n"
        elif name == "sqlite_stat1":
            self.write("ANALYZE sqlite_master;\n")
        elif name.startswith("sqlite_"):
            return
        elif sql.startswith("CREATE VIRTUAL TABLE"):
            if not self.writable_schema:
                self.write("PRAGMA writable_schema=ON;\n")
                self.writable_schema = True
            self.write("INSERT INTO sqlite_master(type, name, tbl_name, rootpage, sql) "
                       "VALUES('table', %s, %s, 0, %s);\n" % (quote_literal(name), quote_literal(name), quote_literal(sql)))
            return
        else:
            self.write(sql + ";\n")

        if kind != "table":
            return

        select = self.content_query(name)
        if select is None:
            self.errors += 1
            return
        error = self.run_table_dump_query(select, first_row)
        if isinstance(error, apsw.CorruptError):
            logger.debug("corruption dumping %s, retrying in reverse", name)
            self.run_table_dump_query(select + REVERSE)

    def content_query(self, table: str) -> str | None:
        """Builds a query whose rows, when their columns are joined with
        commas, are INSERT statements for each row of table.  None is
        returned if the table has no columns."""
        columns = [row[1] for row in self.db.cursor().execute("PRAGMA table_info(%s);" % (quote_identifier(table), ))]
        if not columns:
            return None
        return "SELECT 'INSERT INTO ' || %s || ' VALUES(' || %s || ')' FROM  %s" % (
            quote_literal(quote_identifier(table)),
            ", ".join("quote(%s)" % (quote_identifier(c), ) for c in columns),
            quote_identifier(table),
        )

    def run_table_dump_query(self, query: str, first_row: str | None = None,
                             bindings: tuple = ()) -> apsw.Error | None:
        """Runs query writing the columns of each row separated by
        commas and terminated by a semicolon.  The semicolon goes on its
        own line if the last line contains a ``--`` comment.  Errors are
        written into the output as comments and returned."""
        try:
            for row in self.db.cursor().execute(query, bindings):
                if first_row:
                    self.write(first_row)
                    first_row = None
                text = ",".join(value_text(v) or "" for v in row)
                if "--" in text.rsplit("\n", 1)[-1]:
                    self.write(text + "\n;\n")
                else:
                    self.write(text + ";\n")
        except apsw.Error as e:
            self.write("/**** ERROR: (%d) %s *****/\n" % (getattr(e, "result", -1), error_message(e)))
            self.errors += 1
            return e
        return None
