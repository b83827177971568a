#!/usr/bin/env python3

from __future__ import annotations

import io
import unittest

import apsw

from sqliteshell.execute import column_count, exec_immediate, next_statement, shell_exec
from sqliteshell.render import SQLITE_INTEGER, SQLITE_NULL, SQLITE_TEXT
from sqliteshell.session import Session, StreamSink

COUNT_TO_TEN = "with recursive c(x) as (select 1 union all select x+1 from c limit 10) select x from c"


class Execute(unittest.TestCase):

    def setUp(self):
        self.db = apsw.Connection(":memory:")
        self.out = io.StringIO()
        self.session = Session(output=StreamSink(self.out, "stdout"))
        self.rows = []

    def tearDown(self):
        self.db.close()

    def collect(self, row):
        self.rows.append(row)
        return False

    def testNextStatement(self):
        self.assertEqual(("select 'a;b';", " select 2"), next_statement("select 'a;b'; select 2"))
        self.assertEqual(("select 1 /* ; */;", ""), next_statement("select 1 /* ; */;"))
        self.assertEqual(("select 1", ""), next_statement("select 1"))

    def testColumnCount(self):
        self.assertEqual(2, column_count(self.db, "select 1, 2"))
        self.db.execute("create table t(a, b, c)")
        self.assertEqual(3, column_count(self.db, "select * from t"))
        self.assertEqual(0, column_count(self.db, "insert into t values(1, 2, 3)"))
        # nothing was actually run
        self.assertEqual(0, self.db.execute("select count(*) from t").get)
        self.assertRaises(apsw.SQLError, column_count, self.db, "select * from nosuch")
        # placeholders need values but nothing is inserted
        self.assertEqual(0, column_count(self.db, "insert into t values(?, ?, ?)", (None, None, None)))
        self.assertEqual(0, self.db.execute("select count(*) from t").get)
        self.assertRaises(apsw.BindingsError, column_count, self.db, "insert into t values(?, ?, ?)")

    def testRows(self):
        self.assertEqual(0, shell_exec(self.db, "select 1 as one, 'x'; ; select null", self.collect, self.session))
        self.assertEqual(2, len(self.rows))
        self.assertEqual(("one", "'x'"), self.rows[0].columns)
        self.assertEqual((1, "x"), self.rows[0].values)
        self.assertEqual((SQLITE_INTEGER, SQLITE_TEXT), self.rows[0].types)
        self.assertEqual((None, ), self.rows[1].values)
        self.assertEqual((SQLITE_NULL, ), self.rows[1].types)
        self.assertEqual(0, self.rows[1].index)

    def testIndex(self):
        shell_exec(self.db, COUNT_TO_TEN, self.collect, self.session)
        self.assertEqual(list(range(10)), [row.index for row in self.rows])

    def testCallbackStops(self):
        seen = []

        def cb(row):
            seen.append(row.values[0])
            return True

        self.assertEqual(0, shell_exec(self.db, COUNT_TO_TEN + "; select 99", cb, self.session))
        self.assertEqual([1, 99], seen)

    def testErrors(self):
        self.assertRaises(apsw.SQLError, shell_exec, self.db, "select * from nosuch; select 5", self.collect,
                          self.session)
        self.assertEqual([], self.rows)

        errors = []
        self.assertEqual(1, shell_exec(self.db, "select * from nosuch; select 5", self.collect, self.session,
                                       errors.append))
        self.assertEqual(1, len(errors))
        self.assertIsInstance(errors[0], apsw.SQLError)
        self.assertEqual([], self.rows)

    def testStopsAtFailure(self):
        errors = []
        self.assertEqual(1, shell_exec(self.db, "select 1; select * from nosuch; select 3", self.collect, self.session,
                                       errors.append))
        self.assertEqual([(1, )], [row.values for row in self.rows])
        self.assertEqual(1, len(errors))

    def testEcho(self):
        self.session.echo = True
        shell_exec(self.db, "select 1;  \n select 2;", None, self.session)
        self.assertEqual("select 1;\nselect 2;\n", self.out.getvalue())

    def testStats(self):
        self.session.stats = True
        shell_exec(self.db, "select 1", None, self.session)
        text = self.out.getvalue()
        for label in ("Memory Used:", "Page cache hits:", "Fullscan Steps:", "Autoindex Inserts:"):
            self.assertIn(label, text)

    def testStatementCleared(self):
        statements = []

        def cb(row):
            statements.append(self.session.statement)
            return False

        shell_exec(self.db, "select 1", cb, self.session)
        self.assertIsNotNone(statements[0])
        self.assertIsNone(self.session.statement)

    def testExecImmediate(self):
        exec_immediate(self.db, "select ?1, ?1 || 'x'", self.collect, ("a", ))
        self.assertEqual(1, len(self.rows))
        self.assertEqual(("a", "ax"), self.rows[0].values)
        self.assertIsNone(self.rows[0].types)


if __name__ == "__main__":
    unittest.main()
