#!/usr/bin/env python3

from __future__ import annotations

import re
import sys
import pathlib

from setuptools import setup, Command


class run_tests(Command):
    description = "Run test suite"

    user_options = [
        ("show-tests", "v", "Show each test being run"),
        ("locals", None, "Show local variables in test failure"),
    ]

    boolean_options = ["show-tests", "locals"]

    def initialize_options(self):
        self.show_tests = 0
        self.locals = False

    def finalize_options(self):
        pass

    def run(self):
        import unittest

        suite = unittest.TestLoader().discover("sqliteshell.tests")
        # verbosity of zero doesn't print anything, one prints a dot
        # per test and two prints each test name
        result = unittest.TextTestRunner(verbosity=self.show_tests + 1, tb_locals=self.locals).run(suite)
        if not result.wasSuccessful():
            sys.exit(1)


def get_version() -> str:
    text = pathlib.Path("sqliteshell/__init__.py").read_text(encoding="utf8")
    return re.search(r'^__version__ = "([^"]+)"', text, re.MULTILINE).group(1)


if __name__ == "__main__":
    setup(
        name="sqliteshell",
        version=get_version(),
        python_requires=">=3.9",
        description="Interactive command line shell for SQLite databases",
        classifiers=[
            "Development Status :: 4 - Beta",
            "Intended Audience :: Developers",
            "Programming Language :: Python :: 3",
            "Topic :: Database :: Front-Ends",
        ],
        keywords=["database", "sqlite", "shell"],
        platforms="any",
        packages=["sqliteshell", "sqliteshell.tests"],
        install_requires=["apsw>=3.46.0.0"],
        entry_points={
            "console_scripts": ["sqliteshell = sqliteshell.shell:main"],
        },
        cmdclass={
            "test": run_tests,
        },
    )
