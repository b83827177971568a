"""Dot commands such as .mode and .dump

Commands are implemented as methods named after the command (eg
command_mode).  Each is passed the list of arguments following the
command name.  The first line of the docstring is ``usage: description``
and is what .help shows, with following lines up to a blank line shown
underneath it.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
import textwrap
import time
from typing import Callable

import apsw

from .dump import SchemaDumper
from .execute import column_count, exec_immediate
from .render import Renderer, c_string, make_row, quote_table_name
from .session import Error, ExplainSnapshot, FileSink, Mode, PipeSink, MAX_COLUMNS, error_message, open_sink

logger = logging.getLogger(__name__)

BACKUP_PAGES = 100
"Pages copied per backup step"
BUSY_RETRIES = 3
BUSY_SLEEP = 0.1

MAX_TOKENS = 50


def resolve_backslashes(s: str) -> str:
    r"""C style escapes: \n \t \r \\ and \NNN octal.  A backslash
    before any other character is dropped."""
    if "\\" not in s:
        return s
    res = []
    i = 0
    while i < len(s):
        c = s[i]
        if c == "\\":
            i += 1
            if i >= len(s):
                break
            c = s[i]
            if c == "n":
                c = "\n"
            elif c == "t":
                c = "\t"
            elif c == "r":
                c = "\r"
            elif "0" <= c <= "7":
                v = int(c)
                for _ in range(2):
                    if i + 1 < len(s) and "0" <= s[i + 1] <= "7":
                        i += 1
                        v = v * 8 + int(s[i])
                    else:
                        break
                c = chr(v)
        res.append(c)
        i += 1
    return "".join(res)


def tokenize(line: str) -> list[str]:
    """Splits a dot command line (including the leading dot) into
    tokens.  Quoted tokens may contain whitespace and an unterminated
    quote runs to the end of the line.  Backslash escapes are resolved
    except inside single quotes."""
    tokens = []
    i = 1
    n = len(line)
    while i < n and len(tokens) < MAX_TOKENS:
        while i < n and line[i].isspace():
            i += 1
        if i >= n:
            break
        if line[i] in "'\"":
            delim = line[i]
            end = line.find(delim, i + 1)
            if end < 0:
                end = n
            token = line[i + 1:end]
            i = end + 1
            if delim == '"':
                token = resolve_backslashes(token)
        else:
            start = i
            while i < n and not line[i].isspace():
                i += 1
            token = resolve_backslashes(line[start:i])
            i += 1
        tokens.append(token)
    return tokens


def atoi(text: str) -> int:
    "Like C atoi - leading sign and digits, otherwise zero"
    text = text.lstrip()
    sign = 1
    if text[:1] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    digits = 0
    while digits < len(text) and text[digits].isdigit():
        digits += 1
    return sign * int(text[:digits] or "0", 10)


@dataclasses.dataclass(frozen=True)
class Command:
    "An entry in the command table"
    name: str
    "Full command name"
    min_length: int
    "How many characters must be typed at minimum"
    args_ok: Callable[[int], bool]
    "Given the number of arguments, are they acceptable"
    handler: str
    "Method implementing the command"

    def matches(self, typed: str, nargs: int) -> bool:
        return len(typed) >= max(self.min_length, 1) and self.name.startswith(typed) and self.args_ok(nargs)


def _any(n):
    return True


# Order matters.  A typed name is tried against each entry in turn,
# and an entry whose argument check fails lets later entries match.
COMMANDS: tuple[Command, ...] = (
    Command("backup", 3, _any, "command_backup"),
    Command("bail", 3, lambda n: n == 1, "command_bail"),
    Command("breakpoint", 3, _any, "command_breakpoint"),
    Command("databases", 2, lambda n: n == 0, "command_databases"),
    Command("dump", 1, _any, "command_dump"),
    Command("echo", 1, lambda n: n == 1, "command_echo"),
    Command("exit", 1, _any, "command_exit"),
    Command("explain", 1, lambda n: n <= 1, "command_explain"),
    Command("headers", 1, lambda n: n == 1, "command_headers"),
    Command("help", 1, _any, "command_help"),
    Command("import", 1, lambda n: n == 2, "command_import"),
    Command("indices", 1, lambda n: n <= 1, "command_indices"),
    Command("load", 1, lambda n: 1 <= n <= 2, "command_load"),
    Command("log", 1, lambda n: n >= 1, "command_log"),
    Command("mode", 1, lambda n: 1 <= n <= 2, "command_mode"),
    Command("nullvalue", 1, lambda n: n == 1, "command_nullvalue"),
    Command("output", 1, lambda n: n == 1, "command_output"),
    Command("print", 3, _any, "command_print"),
    Command("prompt", 1, lambda n: 1 <= n <= 2, "command_prompt"),
    Command("quit", 1, lambda n: n == 0, "command_quit"),
    Command("read", 3, lambda n: n == 1, "command_read"),
    Command("restore", 3, lambda n: 1 <= n <= 2, "command_restore"),
    Command("schema", 1, lambda n: n <= 1, "command_schema"),
    Command("separator", 1, lambda n: n == 1, "command_separator"),
    Command("show", 1, lambda n: n == 0, "command_show"),
    Command("stats", 1, lambda n: n == 1, "command_stats"),
    Command("tables", 2, lambda n: n <= 1, "command_tables"),
    Command("testctrl", 8, lambda n: n >= 1, "command_testctrl"),
    Command("timeout", 5, lambda n: n == 1, "command_timeout"),
    Command("timer", 5, lambda n: n == 1, "command_timer"),
    Command("trace", 1, lambda n: n >= 1, "command_trace"),
    Command("version", 1, _any, "command_version"),
    Command("vfsname", 1, _any, "command_vfsname"),
    Command("width", 1, lambda n: n >= 1, "command_width"),
)


def find_command(typed: str, nargs: int) -> Command | None:
    for command in COMMANDS:
        if command.matches(typed, nargs):
            return command
    return None


# names accepted by .mode, with the separator each one sets if any
MODES = {
    "line": (Mode.line, None),
    "lines": (Mode.line, None),
    "column": (Mode.column, None),
    "columns": (Mode.column, None),
    "list": (Mode.list, None),
    "semi": (Mode.semi, None),
    "html": (Mode.html, None),
    "insert": (Mode.insert, None),
    "tcl": (Mode.tcl, " "),
    "csv": (Mode.csv, ","),
    "tabs": (Mode.list, "\t"),
}

MODE_HELP = (
    ("csv", "Comma-separated values"),
    ("column", "Left-aligned columns.  (See .width)"),
    ("html", "HTML <table> code"),
    ("insert", "SQL insert statements for TABLE"),
    ("line", "One value per line"),
    ("list", "Values delimited by .separator string"),
    ("tabs", "Tab-separated values"),
    ("tcl", "TCL list elements"),
)

# name and the arguments it takes - None means the control exists but
# there is no way to pass its arguments from the command line
TESTCTRL = (
    ("prng_save", 0),
    ("prng_restore", 0),
    ("prng_reset", 0),
    ("bitvec_test", None),
    ("fault_install", None),
    ("benign_malloc_hooks", None),
    ("pending_byte", 1),
    ("assert", 1),
    ("always", 1),
    ("reserve", 1),
    ("optimizations", 1),
    ("iskeyword", 1),
    ("scratchmalloc", None),
)

EXPLAIN_WIDTHS = [4, 13, 4, 4, 4, 13, 2, 13]


class MetaCommands:
    """Dot command processing, mixed into :class:`~sqliteshell.shell.Shell`

    Expects the shell to provide ``session``, ``db``, ``stdout``,
    ``stderr`` and :meth:`process_input`."""

    Error = Error

    def do_meta_command(self, line: str) -> int:
        """Runs one dot command line.

        :returns: 0 for success, 1 if there was an error (already
          reported) and 2 if the shell should stop reading input
        """
        args = tokenize(line)
        if not args:
            return 0
        command = find_command(args[0], len(args) - 1)
        if command is None:
            self.write(self.stderr, 'Error: unknown command or invalid arguments:  "%s". Enter ".help" for help\n' %
                       (args[0], ))
            return 1
        logger.debug("dot command %s with %r", command.name, args[1:])
        try:
            rc = getattr(self, command.handler)(args[1:])
        except Error as e:
            self.write(self.stderr, "Error: %s\n" % (e, ))
            return 1
        except apsw.Error as e:
            self.write(self.stderr, "Error: %s\n" % (error_message(e), ))
            return 1
        return rc or 0

    def write(self, dest, text: str) -> None:
        "Writes text to dest which is a stream or sink"
        dest.write(text)

    def boolean_value(self, arg: str) -> bool:
        "Integers, on/off and yes/no.  Anything else warns and is off"
        if arg.isdigit():
            return int(arg) != 0
        if arg.lower() in ("on", "yes"):
            return True
        if arg.lower() in ("off", "no"):
            return False
        self.write(self.stderr, 'ERROR: Not a boolean value: "%s". Assuming "no".\n' % (arg, ))
        return False

    def _internal_query(self, sql: str, bindings: tuple = (), **settings) -> None:
        "Runs a catalog query rendering through a temporary copy of the session"
        exec_immediate(self.db, sql, Renderer(self.session.snapshot(**settings)), bindings)

    def _copy_database(self, dest: apsw.Connection, dest_name: str, source: apsw.Connection,
                       source_name: str) -> None:
        """Streams pages from source to dest, retrying a few times if the
        source is busy"""
        backup = dest.backup(dest_name, source, source_name)
        retries = 0
        try:
            while True:
                try:
                    if backup.step(BACKUP_PAGES):
                        break
                except (apsw.BusyError, apsw.LockedError):
                    retries += 1
                    if retries > BUSY_RETRIES:
                        raise self.Error("source database is busy")
                    logger.debug("source busy, retry %d", retries)
                    time.sleep(BUSY_SLEEP)
        finally:
            backup.finish()

    def _open_other(self, filename: str) -> apsw.Connection:
        try:
            return apsw.Connection(filename)
        except apsw.Error:
            raise self.Error('cannot open "%s"' % (filename, ))

    ###
    ### Commands start here
    ###

    def command_backup(self, cmd):
        """backup ?DB? FILE: Backup DB (default "main") to FILE

        Copies the pages of the database to FILE, replacing whatever
        it contained.
        """
        dbname = None
        filename = None
        i = 0
        while i < len(cmd):
            arg = cmd[i]
            if arg.startswith("-"):
                if arg.lstrip("-") == "key" and i < len(cmd) - 1:
                    # no codec support so the key is not used
                    i += 2
                    continue
                raise self.Error("unknown option: %s" % (arg, ))
            if filename is None:
                filename = arg
            elif dbname is None:
                dbname, filename = filename, arg
            else:
                raise self.Error("too many arguments to .backup")
            i += 1
        if filename is None:
            raise self.Error("missing FILENAME argument on .backup")
        dest = self._open_other(filename)
        try:
            self._copy_database(dest, "main", self.db, dbname or "main")
        finally:
            dest.close()

    def command_bail(self, cmd):
        "bail ON|OFF: Stop after hitting an error.  Default OFF"
        self.session.bail = self.boolean_value(cmd[0])

    def command_breakpoint(self, cmd):
        # undocumented - somewhere to put a debugger breakpoint
        logger.debug("breakpoint")

    def command_databases(self, cmd):
        "databases: List names and files of attached databases"
        self._internal_query("PRAGMA database_list", header=True, mode=Mode.column, widths=[3, 15, 58])

    def command_dump(self, cmd):
        """dump ?TABLE? ...: Dump the database in an SQL text format
        If TABLE specified, only dump tables matching
        LIKE pattern TABLE.
        """
        if SchemaDumper(self.db, self.session).dump(cmd):
            logger.debug("dump finished with errors")

    def command_echo(self, cmd):
        "echo ON|OFF: Turn command echo on or off"
        self.session.echo = self.boolean_value(cmd[0])

    def command_exit(self, cmd):
        "exit: Exit this program"
        if cmd:
            code = atoi(cmd[0])
            if code:
                raise SystemExit(code)
        return 2

    def command_explain(self, cmd):
        """explain ?ON|OFF?: Turn output mode suitable for EXPLAIN on or off.
        With no args, it turns EXPLAIN on.
        """
        s = self.session
        if not cmd or self.boolean_value(cmd[0]):
            if s.explain_prev is None:
                s.explain_prev = ExplainSnapshot(s.mode, s.header, list(s.widths))
            s.mode = Mode.explain
            s.header = True
            s.widths = list(EXPLAIN_WIDTHS)
        elif s.explain_prev is not None:
            s.mode = s.explain_prev.mode
            s.header = s.explain_prev.header
            s.widths = s.explain_prev.widths
            s.explain_prev = None

    def command_headers(self, cmd):
        "header(s) ON|OFF: Turn display of headers on or off"
        self.session.header = self.boolean_value(cmd[0])

    _help_info = None

    def _build_help(self):
        info = {}
        for command in COMMANDS:
            doc = getattr(self, command.handler).__doc__
            if not doc:
                continue
            lines = inspect.cleandoc(doc).split("\n")
            usage, summary = lines[0].split(": ", 1)
            more = []
            for line in lines[1:]:
                if not line.strip():
                    break
                more.append(line.strip())
            detail = "\n".join(lines[len(more) + 1:]).strip()
            if command.name == "mode":
                more.extend("  %-8s %s" % m for m in MODE_HELP)
            info[command.name] = ("." + usage, summary, more, detail)
        return info

    def command_help(self, cmd):
        """help ?COMMAND?: Show this message

        With a COMMAND name the longer description is shown as well.
        """
        if self._help_info is None:
            self._help_info = self._build_help()
        names = list(self._help_info)
        if cmd:
            names = []
            for c in cmd:
                c = c.lstrip(".")
                if c == "header":
                    c = "headers"
                if c not in self._help_info:
                    raise self.Error('No such command "%s"' % (c, ))
                names.append(c)
        out = []
        for name in names:
            usage, summary, more, detail = self._help_info[name]
            out.append("%-22s %s\n" % (usage, summary))
            for line in more:
                # other forms of the command line up with the usage column
                out.append((line if line.startswith(".") else " " * 25 + line) + "\n")
            if cmd and detail:
                out.append("\n" + textwrap.fill(detail, 72) + "\n\n")
        self.write(self.stderr, "".join(out))

    @staticmethod
    def read_records(f):
        """Yields (line number, text) for each record, joining physical
        lines while inside a double quoted field.  The line number is
        that of the last physical line."""
        lineno = 0
        while True:
            line = f.readline()
            if not line:
                return
            lineno += 1
            while line.count('"') % 2:
                more = f.readline()
                if not more:
                    break
                lineno += 1
                line += more
            if line.endswith("\n"):
                line = line[:-1]
            if line.endswith("\r"):
                line = line[:-1]
            yield lineno, line

    @staticmethod
    def split_record(text: str, separator: str) -> list[str]:
        """Splits on separator outside of double quotes.  A field
        starting with a quote has that quote removed and doubled quotes
        inside made single."""
        fields = []
        in_quote = False
        start = 0
        i = 0
        while i < len(text):
            c = text[i]
            if c == '"':
                in_quote = not in_quote
            elif not in_quote and text.startswith(separator, i):
                fields.append(text[start:i])
                i += len(separator)
                start = i
                continue
            i += 1
        fields.append(text[start:])
        return [MetaCommands._unquote(f) for f in fields]

    @staticmethod
    def _unquote(field: str) -> str:
        if not field.startswith('"'):
            return field
        res = []
        j = 1
        while j < len(field):
            if field[j] == '"':
                j += 1
                if j >= len(field):
                    break
            res.append(field[j])
            j += 1
        return "".join(res)

    def command_import(self, cmd):
        """import FILE TABLE: Import data from FILE into TABLE

        Each line of FILE is split on the current separator and must
        have as many fields as TABLE has columns.  Fields can be
        enclosed in double quotes.  Everything is done in one
        transaction which is rolled back if any line fails.
        """
        filename, table = cmd
        separator = self.session.separator
        if not separator:
            raise self.Error("non-null separator required for import")
        ncol = column_count(self.db, "SELECT * FROM %s" % (table, ))
        if ncol == 0:
            return
        sql = "INSERT INTO %s VALUES(%s)" % (table, ",".join("?" * ncol))
        # prepare now so a bad statement is reported before the file is read
        column_count(self.db, sql, (None, ) * ncol)
        try:
            f = open(filename, "r", encoding="utf8", newline="")
        except OSError:
            raise self.Error('cannot open "%s"' % (filename, ))
        cur = self.db.cursor()
        cur.execute("BEGIN")
        count = 0
        try:
            with f:
                for lineno, text in self.read_records(f):
                    fields = self.split_record(text, separator)
                    if len(fields) != ncol:
                        raise self.Error("%s line %d: expected %d columns of data but found %d" %
                                         (filename, lineno, ncol, len(fields)))
                    cur.execute(sql, fields)
                    count += 1
        except BaseException:
            logger.debug("import of %s rolled back after %d rows", filename, count)
            self.db.cursor().execute("ROLLBACK")
            raise
        self.db.cursor().execute("COMMIT")
        logger.debug("imported %d rows from %s into %s", count, filename, table)

    def command_indices(self, cmd):
        """indices ?TABLE?: Show names of all indices
        If TABLE specified, only show indices for tables
        matching LIKE pattern TABLE.
        """
        if not cmd:
            sql = ("SELECT name FROM sqlite_master WHERE type='index' AND name NOT LIKE 'sqlite_%' "
                   "UNION ALL SELECT name FROM sqlite_temp_master WHERE type='index' ORDER BY 1")
        else:
            sql = ("SELECT name FROM sqlite_master WHERE type='index' AND tbl_name LIKE ?1 "
                   "UNION ALL SELECT name FROM sqlite_temp_master WHERE type='index' AND tbl_name LIKE ?1 "
                   "ORDER BY 1")
        self._internal_query(sql, tuple(cmd), header=False, mode=Mode.list)

    def command_load(self, cmd):
        """load FILE ?ENTRY?: Load an extension library

        By default sqlite3_extension_init is called in the library but
        you can specify an alternate entry point.
        """
        try:
            self.db.enable_load_extension(True)
        except apsw.Error:
            raise self.Error("Extension loading is not supported")
        self.db.load_extension(*cmd)

    def log_handler(self, code, message):
        "Called with SQLite log messages while .log is active"
        if self.session.log is not None:
            self.session.log.write("(%d) %s\n" % (code, message))
            self.session.log.flush()

    def command_log(self, cmd):
        "log FILE|off: Turn logging on or off.  FILE can be stderr/stdout"
        try:
            sink = open_sink(cmd[0], self.stdout, self.stderr)
        except Error:
            self.session.set_log(None)
            apsw.config(apsw.SQLITE_CONFIG_LOG, None)
            raise
        self.session.set_log(sink)
        apsw.config(apsw.SQLITE_CONFIG_LOG, self.log_handler if sink is not None else None)

    def command_mode(self, cmd):
        "mode MODE ?TABLE?: Set output mode where MODE is one of:"
        name = cmd[0]
        if len(cmd) == 2 and name != "insert":
            raise self.Error('invalid arguments:  "%s". Enter ".help" for help' % (cmd[1], ))
        if name not in MODES:
            raise self.Error("mode should be one of: column csv html insert line list tabs tcl")
        mode, separator = MODES[name]
        self.session.mode = mode
        if separator is not None:
            self.session.separator = separator
        if mode is Mode.insert:
            self.session.table = quote_table_name(cmd[1] if len(cmd) == 2 else "table")

    def command_nullvalue(self, cmd):
        "nullvalue STRING: Use STRING in place of NULL values"
        self.session.nullvalue = cmd[0]

    def command_output(self, cmd):
        """output FILENAME: Send output to FILENAME
        .output stdout         Send output to the screen

        A FILENAME starting with | sends output to that shell command.
        """
        target = cmd[0]
        # the previous sink is closed first so an error leaves stdout in place
        self.session.set_output(self.stdout_sink)
        if target in ("stdout", "off"):
            return
        if target.startswith("|"):
            self.session.set_output(PipeSink(target[1:]))
        else:
            self.session.set_output(FileSink(target))

    def command_print(self, cmd):
        "print STRING...: Print literal STRING"
        self.write(self.session.output, " ".join(cmd) + "\n")

    def command_prompt(self, cmd):
        "prompt MAIN CONTINUE: Replace the standard prompts"
        self.session.main_prompt = cmd[0]
        if len(cmd) > 1:
            self.session.continue_prompt = cmd[1]

    def command_quit(self, cmd):
        "quit: Exit this program"
        return 2

    def command_read(self, cmd):
        "read FILENAME: Execute SQL in FILENAME"
        try:
            f = open(cmd[0], "r", encoding="utf8")
        except OSError:
            raise self.Error('cannot open "%s"' % (cmd[0], ))
        with f:
            return self.process_input(f)

    def command_restore(self, cmd):
        'restore ?DB? FILE: Restore content of DB (default "main") from FILE'
        if len(cmd) == 1:
            dbname, filename = "main", cmd[0]
        else:
            dbname, filename = cmd
        source = self._open_other(filename)
        try:
            self._copy_database(self.db, dbname, source, "main")
        finally:
            source.close()

    def command_schema(self, cmd):
        """schema ?TABLE?: Show the CREATE statements
        If TABLE specified, only show tables matching
        LIKE pattern TABLE.
        """
        union = ("SELECT sql FROM "
                 "  (SELECT sql sql, type type, tbl_name tbl_name, name name, rowid x"
                 "     FROM sqlite_master UNION ALL"
                 "   SELECT sql, type, tbl_name, name, rowid FROM sqlite_temp_master) ")
        settings = {"header": False, "mode": Mode.semi}
        if cmd:
            name = cmd[0].lower()
            if name in ("sqlite_master", "sqlite_temp_master"):
                if name == "sqlite_master":
                    sql = "CREATE TABLE sqlite_master (type text, name text, tbl_name text, rootpage integer, sql text)"
                else:
                    sql = ("CREATE TEMP TABLE sqlite_temp_master (type text, name text, tbl_name text, "
                           "rootpage integer, sql text)")
                Renderer(self.session.snapshot(**settings))(make_row(("sql", ), (sql, )))
                return
            self._internal_query(
                union + "WHERE lower(tbl_name) LIKE ?1 AND type!='meta' AND sql NOTNULL ORDER BY x", (name, ),
                **settings)
        else:
            self._internal_query(
                union + "WHERE type!='meta' AND sql NOTNULL AND name NOT LIKE 'sqlite_%' ORDER BY x", **settings)

    def command_separator(self, cmd):
        "separator STRING: Change separator used by output mode and .import"
        self.session.separator = cmd[0]

    def command_show(self, cmd):
        "show: Show the current values for various settings"
        s = self.session

        def show(name, value):
            self.write(s.output, "%9.9s: %s\n" % (name, value))

        onoff = lambda v: "on" if v else "off"
        show("echo", onoff(s.echo))
        show("explain", onoff(s.explain_prev is not None))
        show("headers", onoff(s.header))
        show("mode", s.mode.value)
        show("nullvalue", c_string(s.nullvalue))
        show("output", s.output.name)
        show("separator", c_string(s.separator))
        show("stats", onoff(s.stats))
        widths = []
        for w in s.widths[:MAX_COLUMNS]:
            if w == 0:
                break
            widths.append("%d " % (w, ))
        show("width", "".join(widths))

    def command_stats(self, cmd):
        "stats ON|OFF: Turn stats on or off"
        self.session.stats = self.boolean_value(cmd[0])

    def command_tables(self, cmd):
        """tables ?TABLE?: List names of tables
        If TABLE specified, only list tables matching
        LIKE pattern TABLE.
        """
        sql = ("SELECT name FROM sqlite_master WHERE type IN ('table','view') "
               "AND name NOT LIKE 'sqlite_%' AND name LIKE ?1")
        for _, dbname, _ in self.db.cursor().execute("PRAGMA database_list"):
            if dbname in ("", "main"):
                continue
            if dbname == "temp":
                sql += (" UNION ALL SELECT 'temp.' || name FROM sqlite_temp_master "
                        "WHERE type IN ('table','view') AND name NOT LIKE 'sqlite_%' AND name LIKE ?1")
            else:
                sql += (" UNION ALL SELECT %s || name FROM \"%s\".sqlite_master "
                        "WHERE type IN ('table','view') AND name NOT LIKE 'sqlite_%%' AND name LIKE ?1" %
                        ("'" + dbname.replace("'", "''") + ".'", dbname.replace('"', '""')))
        sql += " ORDER BY 1"
        names = [row[0] for row in self.db.cursor().execute(sql, (cmd[0] if cmd else "%", ))]
        if not names:
            return
        maxlen = max(len(n) for n in names)
        ncols = max(80 // (maxlen + 2), 1)
        nrows = (len(names) + ncols - 1) // ncols
        for i in range(nrows):
            line = []
            for j in range(i, len(names), nrows):
                line.append(("" if j < nrows else "  ") + names[j].ljust(maxlen))
            self.write(self.session.output, "".join(line) + "\n")

    def command_testctrl(self, cmd):
        "testctrl CMD ...: Run various sqlite3_test_control() operations"
        name = cmd[0]
        matches = [(n, nargs) for n, nargs in TESTCTRL if n.startswith(name)]
        if len(matches) > 1:
            self.write(self.stderr, 'ambiguous option name: "%s"\n' % (name, ))
        if len(matches) != 1:
            code = atoi(name)
            if not 1 <= code <= len(TESTCTRL):
                raise self.Error("invalid testctrl option: %s" % (name, ))
            matches = [TESTCTRL[code - 1]]
        ctrl, nargs = matches[0]
        if nargs is not None and len(cmd) - 1 != nargs:
            raise self.Error("testctrl %s takes %s" % (ctrl, "no options" if nargs == 0 else "a single option"))
        raise self.Error("CLI support for testctrl %s not implemented" % (ctrl, ))

    def command_timeout(self, cmd):
        "timeout MS: Try opening locked tables for MS milliseconds"
        self.db.set_busy_timeout(atoi(cmd[0]))

    def command_timer(self, cmd):
        """timer ON|OFF: Turn the CPU timer measurement on or off

        Time and resource usage is shown after each SQL statement.
        """
        self.session.timer = self.boolean_value(cmd[0])

    def _trace_statement(self, event):
        if self.session.trace is not None:
            self.session.trace.write(event["sql"] + "\n")

    def command_trace(self, cmd):
        "trace FILE|off: Output each SQL statement as it is run"
        try:
            sink = open_sink(cmd[0], self.stdout, self.stderr)
        except Error:
            self.session.set_trace(None)
            self.db.trace_v2(0, None, id=self)
            raise
        self.session.set_trace(sink)
        if sink is None:
            self.db.trace_v2(0, None, id=self)
        else:
            self.db.trace_v2(apsw.SQLITE_TRACE_STMT, self._trace_statement, id=self)

    def command_version(self, cmd):
        "version: Show source, library and compiler versions"
        self.write(self.session.output, "SQLite %s %s\n" % (apsw.sqlite_lib_version(), apsw.sqlite3_sourceid()))

    def command_vfsname(self, cmd):
        "vfsname ?AUX?: Print the name of the VFS stack"
        if self._db is None:
            return
        name = self._db.vfsname(cmd[0] if cmd else "main")
        if name:
            self.write(self.session.output, name + "\n")

    def command_width(self, cmd):
        'width NUM1 NUM2 ...: Set column widths for "column" mode'
        widths = self.session.widths
        for j, arg in enumerate(cmd[:MAX_COLUMNS]):
            if j < len(widths):
                widths[j] = atoi(arg)
            else:
                widths.append(atoi(arg))
