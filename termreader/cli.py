"""\
Usages:
    termreader             read last book
    termreader BOOKFILE    read BOOKFILE (parsed-book JSON)
    termreader STRINGS     read matched STRINGS from history
    termreader NUMBER      read file from history
                           with associated NUMBER

Options:
    -r              print reading history
    -d              dump book as plain text
    -w COLS         text width for -d (default 80)
    -h, --help      print short, long help
    -v, --version   print version
    --clean         reset to fresh state (delete positions and bookmarks)
    --debug         write debug.log to the config directory

Key Binding:
    Help             : ?
    Quit             : q
    Scroll down      : DOWN      j
    Scroll up        : UP        k
    Page down        : PGDN      RIGHT   SPC
    Page up          : PGUP      LEFT
    Next chapter     : n
    Prev chapter     : p
    Beginning of ch  : HOME
    End of ch        : END
    Search           : /
    Next Occurrence  : n
    Prev Occurrence  : p
    Clear search     : ESC
    ToC              : TAB       t
    Metadata         : m
    Save bookmark    : s
    Bookmarks        : b
    Switch colorsch  : c
    Switch width     : =
"""

import curses
import logging
import os
import re
import shutil
import sys
from difflib import SequenceMatcher as SM

from . import __author__, __license__, __url__, __version__
from .config import default_config_dir, load_config, text_width
from .content import load_book
from .errors import MalformedContent
from .reader import preread
from .reflow import CODE, ReflowEngine
from .session import ReadingSession
from .state import StateStore

logger = logging.getLogger(__name__)

DUMP_WIDTH = 80
MIN_COLS, MIN_ROWS = 22, 12


def setup_logging(debug, config_dir):
    """Send termreader's log records to <config dir>/debug.log with --debug.

    Nothing goes to the terminal: curses owns it while reading.
    """
    if not debug or config_dir is None:
        return None
    os.makedirs(config_dir, exist_ok=True)
    handler = logging.FileHandler(os.path.join(config_dir, "debug.log"), encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    package_logger = logging.getLogger("termreader")
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)
    return handler


def dump(document, width=DUMP_WIDTH, out=None):
    """Write the whole book, reflowed at width, as plain text."""
    out = out if out is not None else sys.stdout.buffer
    engine = ReflowEngine(document, width)
    for chapter in document:
        if not chapter.blocks:
            continue
        for line in engine.layout(chapter.index):
            text = line.source if line.kind == CODE else line.text
            out.write((text.rstrip() + "\n").encode("utf-8"))
        out.write(b"\n")


def print_history(recents):
    print("Reading history:")
    dig = len(str(len(recents) + 1))
    for n, entry in enumerate(recents):
        print(str(n + 1).rjust(dig) + ("* " if n == 0 else "  ") + entry.path)


def match_history(recents, args):
    """The history entry best matching args (a number or strings), or None."""
    if len(args) == 1 and re.match(r"[0-9]+$", args[0]) is not None:
        index = int(args[0]) - 1
        return recents[index] if 0 <= index < len(recents) else None
    val, cand = 0, None
    for entry in recents:
        match_val = sum(j.size for j in SM(None, entry.path.lower(), " ".join(args).lower()).get_matching_blocks())
        if match_val > val:
            val, cand = match_val, entry
    return cand


def take_option(args, option):
    if option in args:
        args.remove(option)
        return True
    return False


def main(argv=None):
    termc, termr = shutil.get_terminal_size()
    args = list(sys.argv[1:] if argv is None else argv)

    if len({"-h", "--help"} & set(args)) != 0:
        hlp = __doc__.rstrip()
        if "-h" in args:
            hlp = re.search("(\n|.)*(?=\n\nKey)", hlp).group()
        print(hlp)
        sys.exit()

    if len({"-v", "--version", "-V"} & set(args)) != 0:
        print(__version__)
        print(__license__, "License")
        print("Copyright (c) 2026", __author__)
        print(__url__)
        sys.exit()

    config_dir = default_config_dir()
    debug = take_option(args, "--debug")
    setup_logging(debug, config_dir)
    store = StateStore(config_dir)
    config = load_config(config_dir)

    if take_option(args, "--clean") or take_option(args, "--reset"):
        removed = store.clean()
        if removed:
            print("Removed {} saved reading state file(s) from {}".format(removed, store.books_dir))
            print("All bookmarks and reading positions have been removed.")
        else:
            print("No state files found. termreader is already in a fresh state.")
        sys.exit()

    dump_mode = take_option(args, "-d")
    history = take_option(args, "-r")
    width = DUMP_WIDTH
    if "-w" in args:
        i = args.index("-w")
        try:
            width = int(args[i + 1])
        except (IndexError, ValueError):
            sys.exit("ERROR: -w needs a number of columns.")
        del args[i:i + 2]

    if history:
        print_history(store.recents(existing_only=True))
        sys.exit()

    if args == []:
        last = store.last_read()
        if last is None:
            print(__doc__)
            sys.exit("ERROR: Found no last read file.")
        file = last.path
    elif os.path.isfile(args[0]):
        file = args[0]
    else:
        recents = store.recents(existing_only=True)
        cand = match_history(recents, args)
        if cand is None:
            print_history(recents)
            print()
            sys.exit("ERROR: Found no matching history.")
        file = cand.path

    logger.info("opening %s", file)
    try:
        if dump_mode:
            dump(load_book(file), width)
            sys.exit()
        if termc < MIN_COLS or termr < MIN_ROWS:
            sys.exit("ERR: Screen was too small (min {}cols x {}rows).".format(MIN_COLS, MIN_ROWS))
        session = ReadingSession.open(file, store, text_width(termc, config), termr - 1)
    except MalformedContent as e:
        sys.exit("ERROR: {}".format(e))
    except OSError as e:
        sys.exit("ERROR: cannot read {}: {}".format(file, e.strerror or e))

    curses.wrapper(preread, session, config, config_dir, debug)


if __name__ == "__main__":
    main()
