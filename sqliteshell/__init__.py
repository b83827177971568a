"""An interactive command line shell for SQLite databases, built on apsw"""

__version__ = "1.0.0"
