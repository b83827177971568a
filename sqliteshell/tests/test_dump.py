#!/usr/bin/env python3

from __future__ import annotations

import io
import unittest

import apsw

from sqliteshell.dump import REVERSE, SCHEMA_TABLES, SchemaDumper, quote_identifier, quote_literal
from sqliteshell.session import Session, StreamSink


class Dump(unittest.TestCase):

    def setUp(self):
        self.db = apsw.Connection(":memory:")
        self.out = io.StringIO()
        self.session = Session(output=StreamSink(self.out, "stdout"))

    def tearDown(self):
        self.db.close()

    def dump(self, *patterns):
        errors = SchemaDumper(self.db, self.session).dump(list(patterns))
        return errors, self.out.getvalue()

    def testQuote(self):
        self.assertEqual('"a""b"', quote_identifier('a"b'))
        self.assertEqual("'it''s'", quote_literal("it's"))

    def testEmpty(self):
        self.assertEqual((0, "PRAGMA foreign_keys=OFF;\nBEGIN TRANSACTION;\nCOMMIT;\n"), self.dump())

    def testTablesAndIndices(self):
        self.db.execute("""
            CREATE TABLE t(a, b);
            INSERT INTO t VALUES(1, 'it''s');
            INSERT INTO t VALUES(NULL, X'0102');
            CREATE INDEX i ON t(a);
        """)
        errors, text = self.dump()
        self.assertEqual(0, errors)
        self.assertEqual(
            "PRAGMA foreign_keys=OFF;\n"
            "BEGIN TRANSACTION;\n"
            "CREATE TABLE t(a, b);\n"
            "INSERT INTO \"t\" VALUES(1,'it''s');\n"
            "INSERT INTO \"t\" VALUES(NULL,X'0102');\n"
            "CREATE INDEX i ON t(a);\n"
            "COMMIT;\n", text)

    def testReplay(self):
        self.db.execute("""
            CREATE TABLE "odd name"(x, "y z");
            INSERT INTO "odd name" VALUES(1.5, 'a
b');
            CREATE VIEW v AS SELECT x FROM "odd name";
        """)
        errors, text = self.dump()
        self.assertEqual(0, errors)
        other = apsw.Connection(":memory:")
        other.execute(text)
        self.assertEqual([(1.5, "a\nb")], list(other.execute('SELECT * FROM "odd name"')))
        self.assertEqual([(1.5, )], list(other.execute("SELECT * FROM v")))
        other.close()

    def testSequence(self):
        self.db.execute("""
            CREATE TABLE s(id INTEGER PRIMARY KEY AUTOINCREMENT, v);
            INSERT INTO s(v) VALUES('one');
        """)
        errors, text = self.dump()
        self.assertEqual(0, errors)
        self.assertIn("DELETE FROM sqlite_sequence;\nINSERT INTO \"sqlite_sequence\" VALUES('s',1);\n", text)
        # the sequence comes after the tables
        self.assertLess(text.index("INSERT INTO \"s\""), text.index("DELETE FROM sqlite_sequence"))
        self.assertNotIn("CREATE TABLE sqlite_sequence", text)

    def testPattern(self):
        self.db.execute("""
            CREATE TABLE keep(a);
            INSERT INTO keep VALUES(1);
            CREATE INDEX keep_a ON keep(a);
            CREATE TABLE other(b);
            INSERT INTO other VALUES(2);
        """)
        errors, text = self.dump("ke%")
        self.assertEqual(0, errors)
        self.assertIn("CREATE TABLE keep(a);\nINSERT INTO \"keep\" VALUES(1);\nCREATE INDEX keep_a ON keep(a);\n", text)
        self.assertNotIn("other", text)

    def testMultiplePatterns(self):
        self.db.execute("CREATE TABLE a(x); CREATE TABLE b(x); CREATE TABLE c(x);")
        errors, text = self.dump("a", "c")
        self.assertIn("CREATE TABLE a(x);", text)
        self.assertIn("CREATE TABLE c(x);", text)
        self.assertNotIn("CREATE TABLE b(x);", text)

    def testWritableSchemaRestored(self):
        self.db.execute("CREATE TABLE t(x)")
        self.dump()
        self.assertEqual(0, self.db.execute("PRAGMA writable_schema").get)
        # the savepoint was released
        self.assertTrue(self.db.in_transaction is False)

    def testTableDumpError(self):
        dumper = SchemaDumper(self.db, self.session)
        error = dumper.run_table_dump_query("SELECT * FROM nosuch")
        self.assertIsInstance(error, apsw.SQLError)
        self.assertEqual(1, dumper.errors)
        self.assertEqual("/**** ERROR: (1) no such table: nosuch *****/\n", self.out.getvalue())

    def testCommentTerminator(self):
        dumper = SchemaDumper(self.db, self.session)
        dumper.run_table_dump_query("SELECT 'one', 'two -- note'")
        self.assertEqual("one,two -- note\n;\n", self.out.getvalue())

    def testContentQuery(self):
        self.db.execute("CREATE TABLE t(a, b)")
        self.assertEqual("SELECT 'INSERT INTO ' || '\"t\"' || ' VALUES(' || quote(\"a\"), quote(\"b\") || ')' FROM  \"t\"",
                         SchemaDumper(self.db, self.session).content_query("t"))
        self.assertIsNone(SchemaDumper(self.db, self.session).content_query("nosuch"))

    def testVirtualTable(self):
        try:
            self.db.execute("CREATE VIRTUAL TABLE docs USING fts5(body)")
        except apsw.SQLError:
            self.skipTest("fts5 not available")
        errors, text = self.dump()
        self.assertEqual(0, errors)
        self.assertIn("PRAGMA writable_schema=ON;\n"
                      "INSERT INTO sqlite_master(type, name, tbl_name, rootpage, sql) "
                      "VALUES('table', 'docs', 'docs', 0, 'CREATE VIRTUAL TABLE docs USING fts5(body)');\n", text)
        self.assertEqual(1, text.count("PRAGMA writable_schema=ON;"))
        self.assertTrue(text.endswith("PRAGMA writable_schema=OFF;\nCOMMIT;\n"))
        self.assertNotIn("CREATE VIRTUAL TABLE docs USING fts5(body);", text)

    def testStat1(self):
        self.db.execute("""
            CREATE TABLE t(a);
            CREATE INDEX i ON t(a);
            INSERT INTO t VALUES(1);
            ANALYZE;
        """)
        errors, text = self.dump()
        self.assertEqual(0, errors)
        self.assertIn("ANALYZE sqlite_master;\nINSERT INTO \"sqlite_stat1\" VALUES('t','i','1 1');\n", text)
        self.assertNotIn("CREATE TABLE sqlite_stat1", text)

    def testCorruptSchemaRetried(self):
        self.db.execute("CREATE TABLE t(x); INSERT INTO t VALUES(1)")
        db = CorruptingConnection(self.db, lambda query: query == SCHEMA_TABLES)
        errors = SchemaDumper(db, self.session).dump()
        self.assertEqual(0, errors)
        self.assertIn("BEGIN TRANSACTION;\n"
                      "/****** CORRUPTION ERROR *******/\n"
                      "/****** database disk image is malformed ******/\n"
                      "CREATE TABLE t(x);\n"
                      "INSERT INTO \"t\" VALUES(1);\n", self.out.getvalue())
        self.assertEqual([SCHEMA_TABLES + REVERSE], [q for q in db.queries if q.startswith(SCHEMA_TABLES)][1:])

    def testCorruptSchemaFailsAgain(self):
        self.db.execute("CREATE TABLE t(x)")
        db = CorruptingConnection(self.db, lambda query: query.startswith(SCHEMA_TABLES))
        errors = SchemaDumper(db, self.session).dump()
        self.assertEqual(1, errors)
        text = self.out.getvalue()
        self.assertIn("/****** CORRUPTION ERROR *******/\n"
                      "/****** database disk image is malformed ******/\n"
                      "/****** ERROR: database disk image is malformed ******/\n", text)
        self.assertTrue(text.endswith("ROLLBACK; -- due to errors\n"))

    def testCorruptTableRetried(self):
        self.db.execute("CREATE TABLE t(x); INSERT INTO t VALUES(1); INSERT INTO t VALUES(2)")
        db = CorruptingConnection(self.db,
                                  lambda query: query.startswith("SELECT 'INSERT INTO ") and not query.endswith(REVERSE))
        errors = SchemaDumper(db, self.session).dump()
        self.assertEqual(1, errors)
        self.assertIn("CREATE TABLE t(x);\n"
                      "/**** ERROR: (11) database disk image is malformed *****/\n"
                      "INSERT INTO \"t\" VALUES(2);\n"
                      "INSERT INTO \"t\" VALUES(1);\n", self.out.getvalue())


class CorruptingConnection:
    """Passes queries through to a real connection except those chosen
    by fail, which raise CorruptError"""

    def __init__(self, db, fail):
        self.db = db
        self.fail = fail
        self.queries = []

    def cursor(self):
        return self

    def execute(self, query, bindings=()):
        self.queries.append(query)
        if self.fail(query):
            e = apsw.CorruptError("database disk image is malformed")
            e.result = apsw.SQLITE_CORRUPT
            raise e
        return self.db.cursor().execute(query, bindings)


if __name__ == "__main__":
    unittest.main()
