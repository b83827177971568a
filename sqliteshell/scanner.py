"""Quote and comment aware helpers that decide how much input has been
typed.  None of these functions touch the database, apart from
:func:`is_complete` which asks SQLite's own tokenizer."""

from __future__ import annotations

import apsw


def is_all_whitespace(s: str) -> bool:
    """Returns True if s consists of whitespace and comments only.

    An unterminated ``/*`` comment means more text is required so
    False is returned.  A ``--`` comment running to the end of s is
    fine."""
    i = 0
    n = len(s)
    while i < n:
        c = s[i]
        if c.isspace():
            i += 1
            continue
        if s.startswith("/*", i):
            end = s.find("*/", i + 2)
            if end < 0:
                return False
            i = end + 2
            continue
        if s.startswith("--", i):
            end = s.find("\n", i + 2)
            if end < 0:
                return True
            i = end + 1
            continue
        return False
    return True


def contains_semicolon(s: str) -> bool:
    "Plain scan for a semicolon - quoting is left to :func:`is_complete`"
    return ";" in s


def is_command_terminator(line: str) -> bool:
    """True if the line is one of the alternate terminators, the
    Oracle style ``/`` or SQL Server style ``go``"""
    line = line.lstrip()
    if line.startswith("/") and is_all_whitespace(line[1:]):
        return True
    if line[:2].lower() == "go" and is_all_whitespace(line[2:]):
        return True
    return False


def is_complete(sql: str | None) -> bool:
    # would sql be complete if a semicolon was typed next
    if not sql:
        return True
    return apsw.complete(sql + ";")
