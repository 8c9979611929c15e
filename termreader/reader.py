"""Curses front end.

Everything here is drawing and key dispatch; what is on a page, where the
reader is and what a search found all come from the ReadingSession.
"""

import curses
import logging
import textwrap
import time

from . import __build_time__
from .config import COLORSCHEMES, next_width_preset, save_config, text_width
from .content import EMPHASIS, INLINE_CODE, STRONG
from .errors import DuplicateBookmark
from .highlight import get_token_color
from .reflow import PAD

logger = logging.getLogger(__name__)


# key bindings
SCROLL_DOWN = {curses.KEY_DOWN, ord("j")}
SCROLL_UP = {curses.KEY_UP, ord("k")}
PAGE_DOWN = {curses.KEY_NPAGE, ord("l"), ord(" "), curses.KEY_RIGHT}
PAGE_UP = {curses.KEY_PPAGE, ord("h"), curses.KEY_LEFT}
CH_NEXT = {ord("n")}
CH_PREV = {ord("p")}
CH_HOME = {curses.KEY_HOME, ord("g")}
CH_END = {curses.KEY_END, ord("G")}
SEARCH = {ord("/")}
CLEAR_SEARCH = {27}
META = {ord("m")}
TOC = {9, ord("t")}
QUIT = {ord("q"), 3}
HELP = {ord("?")}
BOOKMARKS = {ord("b")}
SAVE_BOOKMARK = {ord("s")}
COLORSWITCH = {ord("c")}
WIDTHSWITCH = {ord("=")}

ENTER = {10, 13, curses.KEY_ENTER}
BACKSPACE = {8, 127, curses.KEY_BACKSPACE}
ESCAPE = 27


# colorscheme
# DARK/LIGHT = (fg, bg)
# -1 is default terminal fg/bg
DARK = (252, 235)
LIGHT = (239, 223)
SCHEME_PAIRS = {"default": 1, "dark": 2, "light": 3}
SCHEME_BACKGROUNDS = {"default": -1, "dark": DARK[1], "light": LIGHT[1]}
SYNTAX_PAIR_START = 10

INLINE_CODE_TOKEN = "Literal.String"
NOTICE_SECONDS = 4
IDLE_TIMEOUT = 1000
SEARCH_POLL_TIMEOUT = 100

HELP_LINES = [
    "Key Bindings:",
    "",
    "q          - Quit",
    "?          - Show this help",
    "Down/Up    - Scroll down/up",
    "Space/PgDn - Next page",
    "PgUp       - Previous page",
    "n          - Next chapter / next match",
    "p          - Previous chapter / prev match",
    "Home       - Beginning of chapter",
    "End        - End of chapter",
    "/          - Search",
    "Esc        - Clear search",
    "Tab/t      - Table of contents",
    "m          - Show metadata",
    "s          - Save bookmark",
    "b          - Show bookmarks",
    "c          - Cycle color schemes",
    "=          - Cycle text width",
]


def rgb_to_color_index(r, g, b):
    """Nearest xterm-256 color for an RGB triple."""
    r, g, b = (max(0, min(255, v)) for v in (r, g, b))
    if max(r, g, b) - min(r, g, b) < 18:
        gray = (r + g + b) // 3
        if gray < 8:
            return 16
        if gray > 248:
            return 231
        return 232 + min(23, (gray - 8) * 24 // 240)
    return 16 + 36 * (r * 6 // 256) + 6 * (g * 6 // 256) + (b * 6 // 256)


class Colors:
    """Color schemes and the color pairs handed out for syntax colors."""

    def __init__(self, stdscr, scheme="default"):
        self.scheme = scheme if scheme in COLORSCHEMES else "default"
        self.supported = False
        self.schemes = False
        self._pairs = {}
        self._next_pair = SYNTAX_PAIR_START
        try:
            curses.start_color()
            curses.use_default_colors()
            curses.init_pair(1, -1, -1)
            self.supported = True
            # dark/light need the 256 color palette
            if curses.COLORS >= 256:
                curses.init_pair(2, DARK[0], DARK[1])
                curses.init_pair(3, LIGHT[0], LIGHT[1])
                self.schemes = True
        except (curses.error, ValueError) as e:
            logger.debug("limited color support (%d colors): %s", getattr(curses, "COLORS", 0), e)
        self.apply(stdscr)

    @property
    def light(self):
        return self.scheme == "light"

    def apply(self, stdscr):
        if self.supported:
            pair = SCHEME_PAIRS[self.scheme] if self.schemes else SCHEME_PAIRS["default"]
            stdscr.bkgd(" ", curses.color_pair(pair))

    def cycle(self, stdscr):
        self.scheme = COLORSCHEMES[(COLORSCHEMES.index(self.scheme) + 1) % len(COLORSCHEMES)]
        self.apply(stdscr)
        return self.scheme

    def rgb_attr(self, rgb):
        if not self.supported or curses.COLORS < 256:
            return curses.A_BOLD
        key = (rgb_to_color_index(*rgb), SCHEME_BACKGROUNDS[self.scheme])
        pair = self._pairs.get(key)
        if pair is None:
            if self._next_pair >= curses.COLOR_PAIRS:
                return curses.A_BOLD
            try:
                curses.init_pair(self._next_pair, *key)
            except curses.error:
                return curses.A_BOLD
            pair = self._pairs[key] = self._next_pair
            self._next_pair += 1
        return curses.color_pair(pair)

    def cell_attr(self, cell):
        if cell.token is not None:
            return self.rgb_attr(get_token_color(cell.token, self.light))
        if cell.style == EMPHASIS:
            return curses.A_UNDERLINE
        if cell.style == STRONG:
            return curses.A_BOLD
        if cell.style == INLINE_CODE:
            return self.rgb_attr(get_token_color(INLINE_CODE_TOKEN, self.light))
        return curses.A_NORMAL


class Modal:
    """Centered dialogs drawn over the page"""

    @staticmethod
    def create_dialog(stdscr, width, height, title=""):
        rows, cols = stdscr.getmaxyx()
        width, height = min(width, cols), min(height, rows)
        dialog = curses.newwin(height, width, (rows - height) // 2, (cols - width) // 2)
        dialog.box()
        if title:
            dialog.addstr(0, 2, " {} ".format(title)[:width - 4])
        dialog.keypad(True)
        return dialog

    @staticmethod
    def destroy_dialog(stdscr, dialog):
        dialog.clear()
        dialog.refresh()
        del dialog
        stdscr.clear()
        stdscr.refresh()

    @staticmethod
    def input_dialog(stdscr, width, title, prompt, max_length=100):
        """Line input: Enter accepts, Esc cancels. Returns the text or None."""
        dialog = Modal.create_dialog(stdscr, width, 3, title)
        inner = dialog.getmaxyx()[1] - len(prompt) - 5
        curses.curs_set(1)
        text = ""
        try:
            while True:
                dialog.addstr(1, 2, prompt)
                dialog.addstr(1, 2 + len(prompt), text[-inner:].ljust(inner))
                dialog.move(1, 2 + len(prompt) + min(len(text), inner))
                dialog.refresh()
                key = dialog.get_wch()
                if key in ENTER or key in ("\n", "\r"):
                    return text
                elif key == ESCAPE or key == "\x1b":
                    return None
                elif key in BACKSPACE or key in ("\x08", "\x7f"):
                    text = text[:-1]
                elif key == curses.KEY_RESIZE:
                    return None
                elif isinstance(key, str) and key.isprintable() and len(text) < max_length:
                    text += key
        finally:
            curses.curs_set(0)
            curses.flushinp()
            Modal.destroy_dialog(stdscr, dialog)

    @staticmethod
    def message_dialog(stdscr, title, message, keys=None):
        """Wrapped message; returns the key that closed it."""
        rows, cols = stdscr.getmaxyx()
        width = min(cols - 4, 60)
        lines = textwrap.wrap(message, width - 4) or [""]
        help_text = "q: Close" if keys is None else "y: Yes | n: No"
        dialog = Modal.create_dialog(stdscr, width, min(rows - 2, len(lines) + 4), title)
        for n, line in enumerate(lines[:rows - 6]):
            dialog.addstr(1 + n, 2, line.center(width - 4))
        dialog.addstr(dialog.getmaxyx()[0] - 2, 2, help_text, curses.A_DIM)
        dialog.refresh()
        closing = {ord("q"), ESCAPE, curses.KEY_RESIZE} | ENTER if keys is None else set(keys) | {ESCAPE}
        while True:
            key = dialog.getch()
            if key in closing:
                curses.flushinp()
                Modal.destroy_dialog(stdscr, dialog)
                return key

    @staticmethod
    def list_dialog(stdscr, title, items, current=0, help_text=None, actions=()):
        """Scrollable list.

        Returns (key, index) when Enter or one of actions is pressed, None
        when the dialog is dismissed.
        """
        rows, cols = stdscr.getmaxyx()
        width = min(cols - 4, max([len(title) + 8, 40] + [len(item) + 6 for item in items]), 80)
        height = min(rows - 2, len(items) + 4)
        display_height = max(1, height - 4)
        if help_text is None:
            help_text = "Enter: Select | q: Cancel"
        current = max(0, min(current, len(items) - 1))
        while True:
            dialog = Modal.create_dialog(stdscr, width, height, title)
            start = max(0, min(current - display_height // 2, len(items) - display_height))
            for row, index in enumerate(range(start, min(len(items), start + display_height))):
                attr = curses.A_REVERSE if index == current else 0
                dialog.addstr(1 + row, 2, items[index][:width - 4], attr)
            dialog.addstr(height - 2, 2, help_text[:width - 4], curses.A_DIM)
            dialog.refresh()
            key = dialog.getch()
            if key in (ord("q"), ESCAPE, curses.KEY_RESIZE):
                Modal.destroy_dialog(stdscr, dialog)
                return None
            elif key in ENTER or key in actions:
                Modal.destroy_dialog(stdscr, dialog)
                return key, current
            elif key in SCROLL_UP and current > 0:
                current -= 1
            elif key in SCROLL_DOWN and current < len(items) - 1:
                current += 1
            elif key in PAGE_UP:
                current = max(0, current - display_height)
            elif key in PAGE_DOWN:
                current = min(len(items) - 1, current + display_height)


def help(stdscr):
    Modal.list_dialog(stdscr, "Help", HELP_LINES, help_text="q: Close")


def toc(stdscr, session):
    entries = session.toc
    if not entries:
        Modal.message_dialog(stdscr, "Table of Contents", "This book has no table of contents.")
        return
    current = session.toc_index() or 0
    items = []
    for n, entry in enumerate(entries):
        prefix = ">> " if n == current else "   "
        items.append(prefix + "  " * (entry.level - 1 if entry.level else 0) + entry.title)
    chosen = Modal.list_dialog(stdscr, "Table of Contents", items, current)
    if chosen is not None:
        session.clear_search()
        session.jump(entries[chosen[1]].position)


def meta(stdscr, session):
    rows, cols = stdscr.getmaxyx()
    wrap_width = max(10, min(cols - 10, 70))
    lines = []
    for key, value in session.document.meta():
        lines += textwrap.wrap(key.upper() + ": " + value, wrap_width)
    Modal.list_dialog(stdscr, "Metadata", lines, help_text="q: Close")


def search_dialog(stdscr):
    query = Modal.input_dialog(stdscr, 60, "", "Search: ")
    return query or None


def save_bookmark(stdscr, session):
    label = Modal.input_dialog(stdscr, 70, "Save bookmark", "Label (empty: suggest): ")
    if label is None:
        return
    label = label or None
    try:
        bookmark = session.add_bookmark(label)
    except DuplicateBookmark as e:
        key = Modal.message_dialog(
            stdscr, "Bookmark exists",
            "{} Add another bookmark at this place?".format(e), keys=(ord("y"), ord("n"))
        )
        if key != ord("y"):
            return
        bookmark = session.add_bookmark(label, allow_duplicate=True)
    except ValueError as e:
        Modal.message_dialog(stdscr, "Bookmark not saved", str(e))
        return
    session.notify("Bookmark saved: {}".format(bookmark.label))


def bookmarks(stdscr, session):
    current = 0
    while True:
        marks = list(session.bookmarks)
        if not marks:
            Modal.message_dialog(stdscr, "Bookmarks (0 saved)",
                                 "No bookmarks saved. Press 's' while reading to save.")
            return
        items = []
        for n, bookmark in enumerate(marks):
            chapter = session.document.chapter(bookmark.position.chapter)
            stamp = bookmark.created[5:16].replace("T", " ") if bookmark.created else ""
            items.append("{:2d}. {}  [{}] {}".format(n + 1, bookmark.label, chapter.title or chapter.index + 1, stamp))
        chosen = Modal.list_dialog(
            stdscr, "Bookmarks ({} saved)".format(len(marks)), items, current,
            help_text="Enter: Go | d: Delete | q: Close", actions=(ord("d"),)
        )
        if chosen is None:
            return
        key, current = chosen
        if key == ord("d"):
            session.remove_bookmark(marks[current])
            current = max(0, current - 1)
            continue
        session.clear_search()
        session.jump_to_bookmark(marks[current])
        return


def draw_line(win, row, x, line, span, colors):
    if line.kind == PAD:
        return
    base = curses.A_BOLD if line.heading else 0
    runs = []
    col = x
    for n, cell in enumerate(line.cells):
        attr = base | colors.cell_attr(cell)
        if span is not None and span[0] <= n < span[1]:
            attr |= curses.A_REVERSE
        if runs and runs[-1][2] == attr:
            runs[-1][1] += cell.glyph
        else:
            runs.append([col, cell.glyph, attr])
        col += cell.width
    try:
        for start, text, attr in runs:
            if text:
                win.addstr(row, start, text, attr)
        if line.continues:
            win.addstr(row, x + line.width, "→", curses.A_DIM)
    except curses.error:
        pass


def draw(stdscr, session, colors, notice=None, debug=False):
    rows, cols = stdscr.getmaxyx()
    x = max(0, (cols - session.width) // 2)
    stdscr.erase()
    page = session.page()
    for row, (line, span) in enumerate(zip(page.lines, page.highlights)):
        if row >= rows - 1:
            break
        draw_line(stdscr, row, x, line, span, colors)

    progress = "{:.0f}%".format(session.progress() * 100)
    if debug:
        progress = "{} | w{} | built {} | {}".format(
            session.paginator.anchor, session.width, __build_time__, progress)
    if session.worker.pending:
        progress = "searching... | " + progress
    elif session.results is not None and session.active_match is not None:
        progress = "match {}/{} | {}".format(
            session.results.index(session.active_match) + 1, len(session.results), progress)
    left = notice if notice else session.chapter_title
    attr = curses.A_REVERSE if notice else curses.A_DIM
    status = " " + left
    room = max(0, cols - 1 - len(progress) - 2)
    status = status[:room].ljust(room) + " " + progress
    try:
        stdscr.addstr(rows - 1, 0, status[:cols - 1], attr)
    except curses.error:
        pass
    stdscr.refresh()


def relayout(stdscr, session, config):
    rows, cols = stdscr.getmaxyx()
    if session.resize(text_width(cols, config), max(1, rows - 1)):
        stdscr.clear()


def reader(stdscr, session, colors, config, config_dir=None, debug=False):
    notice, notice_time = None, 0.0
    countstring = ""
    while True:
        relayout(stdscr, session, config)
        session.poll_search()
        for message in session.take_notices():
            notice, notice_time = message, time.monotonic()
        if notice and time.monotonic() - notice_time > NOTICE_SECONDS:
            notice = None
        draw(stdscr, session, colors, notice, debug)
        session.maybe_checkpoint()

        stdscr.timeout(SEARCH_POLL_TIMEOUT if session.worker.pending else IDLE_TIMEOUT)
        k = stdscr.getch()
        stdscr.timeout(-1)
        if k == -1:
            continue

        if ord("0") <= k <= ord("9"):
            countstring += chr(k)
            continue
        count = int(countstring) if countstring else 1

        if k in QUIT:
            if k == ord("q") and countstring:
                countstring = ""
                continue
            return
        countstring = ""

        if k in SCROLL_DOWN:
            session.scroll_lines(count)
        elif k in SCROLL_UP:
            session.scroll_lines(-count)
        elif k in PAGE_DOWN:
            session.scroll_pages(count)
        elif k in PAGE_UP:
            session.scroll_pages(-count)
        elif k in CH_NEXT:
            if session.results:
                session.next_match()
            else:
                for _ in range(count):
                    session.next_chapter()
        elif k in CH_PREV:
            if session.results:
                session.previous_match()
            else:
                for _ in range(count):
                    session.previous_chapter()
        elif k in CH_HOME:
            session.chapter_start()
        elif k in CH_END:
            session.chapter_end()
        elif k in CLEAR_SEARCH:
            session.clear_search()
        elif k in SEARCH:
            query = search_dialog(stdscr)
            if query:
                session.search(query, background=True)
        elif k in TOC:
            toc(stdscr, session)
        elif k in META:
            meta(stdscr, session)
        elif k in HELP:
            help(stdscr)
        elif k in SAVE_BOOKMARK:
            save_bookmark(stdscr, session)
        elif k in BOOKMARKS:
            bookmarks(stdscr, session)
        elif k in COLORSWITCH:
            config["colorscheme"] = colors.cycle(stdscr)
            save_config(config_dir, config)
        elif k in WIDTHSWITCH:
            config["max_width"] = next_width_preset(session.width)
            save_config(config_dir, config)
        elif k == curses.KEY_RESIZE:
            stdscr.clear()


def preread(stdscr, session, config, config_dir=None, debug=False):
    colors = Colors(stdscr, config.get("colorscheme"))
    stdscr.keypad(True)
    try:
        curses.curs_set(0)
    except curses.error:
        pass
    try:
        reader(stdscr, session, colors, config, config_dir, debug)
    finally:
        session.close()
