#!/usr/bin/env python3

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

import apsw
import apsw.ext

from .commands import MetaCommands
from .execute import shell_exec
from .render import Renderer
from .scanner import contains_semicolon, is_all_whitespace, is_command_terminator, is_complete
from .session import Error, Session, error_message, stdout_sink

logger = logging.getLogger(__name__)


class Shell(MetaCommands):
    """Implements an interactive SQLite shell

    :param stdin: Where to read input from (default sys.stdin)
    :param stdout: Where to send output (default sys.stdout)
    :param stderr: Where to send errors (default sys.stderr)
    :param args: This should be program arguments only (ie if
      passing in sys.argv do not include sys.argv[0] which is the
      program name.  You can also pass in None and then call
      :meth:`process_args` if you want to catch any errors
      in handling the arguments yourself.
    :param db: A existing :class:`~apsw.Connection` you wish to use

    Input is read a line at a time.  Lines starting with a dot are
    commands (see .help) while everything else is accumulated until it
    forms complete SQL which is then run with results shown in the
    current output mode.
    """

    Error = Error

    program = "sqliteshell"
    history_file = "~/.sqlite_history"
    history_length = 100

    def __init__(self,
                 stdin: TextIO | None = None,
                 stdout: TextIO | None = None,
                 stderr: TextIO | None = None,
                 args: list[str] | None = None,
                 db: apsw.Connection | None = None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        self.stdout_sink = stdout_sink(self.stdout)
        self.session = Session(output=self.stdout_sink)
        self.vfs: str | None = None
        self._db = db
        self.dbfilename = db.filename if db else None
        # set when an interrupt was seen and checked before each line
        self.interrupted = False
        self.exit_code = 0
        self.interactive = bool(getattr(self.stdin, "isatty", None) and self.stdin.isatty())

        if args:
            self.process_args(args)

    def _ensure_db(self) -> apsw.Connection:
        "The database isn't opened until first use.  This function ensures it is now open."
        if self._db is None:
            if not self.dbfilename:
                self.dbfilename = ":memory:"
            try:
                self._db = apsw.Connection(self.dbfilename,
                                           flags=apsw.SQLITE_OPEN_URI | apsw.SQLITE_OPEN_READWRITE
                                           | apsw.SQLITE_OPEN_CREATE,
                                           vfs=self.vfs)
            except apsw.Error as e:
                raise self.Error('unable to open database "%s": %s' % (self.dbfilename, error_message(e)))
            logger.debug("opened %s", self.dbfilename)
        return self._db

    db = property(_ensure_db, None, None, "The current :class:`~apsw.Connection`")

    # options that are followed by a value
    VALUE_OPTIONS = ("separator", "nullvalue", "cmd", "init", "vfs")

    def _option_error(self, message: str):
        self.write(self.stderr, "%s: Error: %s\nUse -help for a list of options.\n" % (self.program, message))
        sys.exit(1)

    def process_args(self, args):
        """Process command line options specified in args.

        :returns: A tuple of (databasefilename, initfiles,
           commands).  The commands have already been run, and
           :attr:`exit_code` reflects how that went.

        The first non-option is the database file name and the second
        is a SQL statement or dot command to run instead of reading
        input.  Options can start with single or double dashes.

        Options are processed in two passes.  The first finds the
        database, the init file and the VFS.  Then the init file (or
        ``~/.sqliterc``) is processed, and finally the second pass
        applies the remaining options so they override whatever the
        init file did.
        """
        if not args:
            return None, [], []

        dbname = None
        first = None
        init = None

        i = 0
        while i < len(args):
            arg = args[i]
            if not arg.startswith("-"):
                if dbname is None:
                    dbname = arg
                elif first is None:
                    first = arg
                else:
                    self._option_error('too many options: "%s"' % (arg, ))
                i += 1
                continue
            opt = arg[2:] if arg.startswith("--") else arg[1:]
            if opt in self.VALUE_OPTIONS:
                if i + 1 >= len(args):
                    self._option_error("missing argument to %s" % (arg, ))
                if opt == "init":
                    init = args[i + 1]
                elif opt == "vfs":
                    if args[i + 1] not in apsw.vfs_names():
                        self.write(self.stderr, 'no such VFS: "%s"\n' % (args[i + 1], ))
                        sys.exit(1)
                    self.vfs = args[i + 1]
                i += 2
                continue
            if opt == "batch":
                self.interactive = False
            i += 1

        if dbname is not None:
            self.dbfilename = dbname
            # only existing files are opened now so a mistyped name
            # doesn't leave an empty database behind
            if os.path.exists(dbname):
                self.db

        rc = self.process_sqliterc(init)
        if rc:
            sys.exit(rc)

        i = 0
        while i < len(args):
            arg = args[i]
            i += 1
            if not arg.startswith("-"):
                continue
            opt = arg[2:] if arg.startswith("--") else arg[1:]
            if opt in ("init", "vfs"):
                i += 1
            elif opt in ("html", "list", "line", "column", "csv"):
                self.command_mode([opt])
            elif opt in ("separator", "nullvalue"):
                getattr(self, "command_" + opt)([args[i]])
                i += 1
            elif opt in ("header", "noheader"):
                self.session.header = opt == "header"
            elif opt in ("echo", "stats", "bail"):
                setattr(self.session, opt, True)
            elif opt == "version":
                self.write(self.stdout, "%s %s\n" % (apsw.sqlite_lib_version(), apsw.sqlite3_sourceid()))
                sys.exit(0)
            elif opt == "interactive":
                self.interactive = True
            elif opt == "batch":
                self.interactive = False
            elif opt == "help":
                self.write(self.stderr, self.usage())
                sys.exit(1)
            elif opt == "cmd":
                rc = self.process_complete_line(args[i])
                i += 1
                if rc and self.session.bail:
                    sys.exit(0 if rc == 2 else rc)
            else:
                self._option_error("unknown option: %s" % (arg, ))

        cmds = []
        if first is not None:
            cmds.append(first)
            rc = self.process_complete_line(first)
            self.exit_code = 0 if rc == 2 else rc
        return self.dbfilename, [init] if init else [], cmds

    def usage(self) -> str:
        "Returns the usage message."
        return """\
Usage: %s [OPTIONS] FILENAME [SQL]
FILENAME is the name of an SQLite database. A new database is created
if the file does not previously exist.
OPTIONS include:
   -bail                stop after hitting an error
   -batch               force batch I/O
   -column              set output mode to 'column'
   -cmd COMMAND         run "COMMAND" before reading stdin
   -csv                 set output mode to 'csv'
   -echo                print commands before execution
   -init FILENAME       read/process named file
   -[no]header          turn headers on or off
   -help                show this message
   -html                set output mode to HTML
   -interactive         force interactive I/O
   -line                set output mode to 'line'
   -list                set output mode to 'list'
   -nullvalue TEXT      set text string for NULL values. Default ''
   -separator SEP       set output field separator. Default: '|'
   -stats               print memory stats before each finalize
   -version             show SQLite version
   -vfs NAME            use NAME as the default VFS
""" % (self.program, )

    def process_sqliterc(self, filename: str | None = None) -> int:
        """Runs the named init file, or ``~/.sqliterc`` if it exists

        :returns: 1 if there were errors
        """
        if filename is None:
            path = os.path.expanduser("~/.sqliterc")
            if not os.path.isfile(path):
                return 0
        else:
            path = filename
        try:
            f = open(path, "r", encoding="utf8")
        except OSError:
            if filename is None:
                return 0
            self.write(self.stderr, 'Error: cannot open "%s"\n' % (path, ))
            return 1
        if self.interactive:
            self.write(self.stderr, "-- Loading resources from %s\n" % (path, ))
        with f:
            return self.process_input(f)

    def run_sql(self, sql: str, lineno: int | None = None) -> int:
        """Executes sql showing results in the current mode.  Errors
        are reported with the line number if one is given.

        :returns: number of statements that failed
        """

        def report(e):
            if lineno is None:
                prefix = "Error:"
            else:
                prefix = "Error: near line %d:" % (lineno, )
            self.write(self.stderr, "%s %s\n" % (prefix, error_message(e)))

        try:
            db = self.db
        except self.Error as e:
            self.write(self.stderr, "Error: %s\n" % (e, ))
            return 1
        with apsw.ext.ShowResourceUsage(self.session.output if self.session.timer else None,
                                        db=db,
                                        scope="thread"):
            return shell_exec(db, sql, Renderer(self.session), self.session, report)

    def process_complete_line(self, command: str) -> int:
        """Runs a dot command or SQL given as one piece of text, such as
        from the command line.

        :returns: 0 on success, 1 on error, 2 if a command asked to exit
        """
        if command.startswith("."):
            return self.do_meta_command(command)
        return 1 if self.run_sql(command) else 0

    def get_line(self, stream: TextIO, prompt: str = "", interactive: bool = False) -> str | None:
        """Returns a single line of input from stream without the
        trailing newline, or None at end of file.

        The prompt is only shown for interactive input."""
        self.stdout.flush()
        self.stderr.flush()
        if interactive:
            if stream is sys.stdin:
                try:
                    return input(prompt)
                except EOFError:
                    return None
            self.write(self.stdout, prompt)
        line = stream.readline()
        if not line:
            return None
        if line[-1] == "\n":
            line = line[:-1]
        return line

    def handle_interrupt(self, interactive: bool) -> None:
        """Deal with keyboard interrupt (typically Control-C).  It
        will :meth:`~apsw.Connection.interrupt` the database and print "^C" if interactive."""
        self.interrupted = True
        if self._db is not None:
            self._db.interrupt()
        if interactive:
            self.write(self.stderr, "^C\n")

    def process_input(self, stream: TextIO, interactive: bool = False) -> int:
        """Reads and runs everything from stream

        Dot commands are dispatched as soon as they are seen while SQL is
        accumulated until it is complete.  In bail mode processing stops
        at the first error unless interactive.

        :returns: 1 if there were any errors, else 0
        """
        buffer: str | None = None
        startline = 0
        lineno = 0
        errors = 0
        while errors == 0 or not self.session.bail or interactive:
            try:
                if self.interrupted:
                    if not interactive:
                        break
                    self.interrupted = False
                line = self.get_line(stream, self.session.continue_prompt if buffer else self.session.main_prompt,
                                     interactive)
                if line is None:
                    if interactive:
                        self.write(self.stdout, "\n")
                    break
                lineno += 1
                if not buffer and is_all_whitespace(line):
                    continue
                if not buffer and line.startswith("."):
                    if self.session.echo:
                        self.write(self.stdout, line + "\n")
                    rc = self.do_meta_command(line)
                    if rc == 2:
                        break
                    if rc:
                        errors += 1
                    continue
                if is_command_terminator(line) and is_complete(buffer):
                    line = ";"
                if not buffer:
                    buffer = line
                    startline = lineno
                else:
                    buffer += "\n" + line
                if contains_semicolon(line) and apsw.complete(buffer):
                    sql, buffer = buffer, None
                    if self.run_sql(sql, None if interactive else startline):
                        errors += 1
                elif is_all_whitespace(buffer):
                    buffer = None
            except KeyboardInterrupt:
                buffer = None
                self.handle_interrupt(interactive)
        if buffer and not is_all_whitespace(buffer):
            self.write(self.stderr, "Error: incomplete SQL: %s\n" % (buffer, ))
            errors += 1
        return 1 if errors else 0

    def cmdloop(self, intro: str | None = None) -> int:
        """Runs the main interactive command loop, reading from stdin.

        :param intro: Initial text banner to display instead of the
           default.  Make sure you newline terminate it.
        :returns: 1 if there were errors
        """
        if not self.interactive:
            return self.process_input(self.stdin)

        if intro is None:
            intro = ("SQLite version %s %.19s\n"
                     'Enter ".help" for instructions\n'
                     'Enter SQL statements terminated with a ";"\n') % (apsw.sqlite_lib_version(),
                                                                          apsw.sqlite3_sourceid())
        self.write(self.stdout, intro)

        readline = None
        if self.stdin is sys.stdin:
            try:
                import readline
            except ImportError:
                pass
            else:
                try:
                    readline.read_history_file(os.path.expanduser(self.history_file))
                except OSError:
                    pass

        try:
            return self.process_input(self.stdin, True)
        finally:
            if readline is not None:
                readline.set_history_length(self.history_length)
                try:
                    readline.write_history_file(os.path.expanduser(self.history_file))
                except OSError as e:
                    logger.debug("history not saved: %s", e)

    def close(self) -> None:
        "Closes output files and the database"
        if self.session.log is not None:
            apsw.config(apsw.SQLITE_CONFIG_LOG, None)
        self.session.close()
        if self._db is not None:
            self._db.close()
            self._db = None


def main() -> None:
    """
    Call this to run the interactive shell.  It automatically passes
    in sys.argv[1:] and exits Python when done.
    """
    s = Shell()
    try:
        _, _, cmds = s.process_args(sys.argv[1:])
        rc = s.exit_code if cmds else s.cmdloop()
    except Shell.Error as e:
        s.write(s.stderr, "%s: Error: %s\n" % (s.program, e))
        rc = 1
    except KeyboardInterrupt:
        rc = 1
    finally:
        s.close()
    sys.exit(rc)


if __name__ == '__main__':
    main()
