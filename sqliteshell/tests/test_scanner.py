#!/usr/bin/env python3

from __future__ import annotations

import unittest

from sqliteshell.scanner import contains_semicolon, is_all_whitespace, is_command_terminator, is_complete


class Scanner(unittest.TestCase):

    def testWhitespace(self):
        for s in ("", "   ", "\t\n", "-- comment", "  /* c */  ", "/* a */ -- b\n  ", "--x\n--y"):
            self.assertTrue(is_all_whitespace(s), s)
        for s in ("select", "/* open", " x -- y", "/* a */ b", "-"):
            self.assertFalse(is_all_whitespace(s), s)

    def testSemicolon(self):
        self.assertTrue(contains_semicolon("a;b"))
        self.assertTrue(contains_semicolon("'a;b'"))
        self.assertFalse(contains_semicolon("select 1"))

    def testTerminator(self):
        for line in ("go", "GO", "  Go  ", "/", "  /  ", "go -- done", "/ /* c */"):
            self.assertTrue(is_command_terminator(line), line)
        for line in ("gone", "select 1", "// x", "g o", ""):
            self.assertFalse(is_command_terminator(line), line)

    def testComplete(self):
        self.assertTrue(is_complete(None))
        self.assertTrue(is_complete(""))
        self.assertTrue(is_complete("select 1"))
        self.assertTrue(is_complete("select 1 /* trailing */"))
        self.assertFalse(is_complete("select 'a;b"))
        self.assertFalse(is_complete("create trigger t after insert on x begin select 1;"))


if __name__ == "__main__":
    unittest.main()
