"""Test configuration and fixtures for termreader tests."""

import json
import os
import sys

import pexpect
import pytest

from termreader import Document
from termreader.state import StateStore


def scenario_data():
    """Two chapters: one short paragraph, one two-line code block."""
    return {
        "title": "Scenario",
        "chapters": [
            {"title": "Prose", "blocks": [
                {"kind": "paragraph", "text": "the quick brown fox"},
            ]},
            {"title": "Code", "blocks": [
                {"kind": "code", "language": "python", "lines": ["def f():", "    return 1"]},
            ]},
        ],
    }


def sample_data():
    filler = [
        {"kind": "paragraph",
         "text": "Paragraph {} of the first chapter is about reading long books "
                 "in a terminal window without losing your place.".format(n)}
        for n in range(1, 31)
    ]
    return {
        "title": "Test Book",
        "author": "Test Author",
        "chapters": [
            {"title": "Getting Started", "blocks": [
                {"kind": "heading", "level": 1, "text": "Getting Started"},
                {"kind": "paragraph", "spans": [
                    {"text": "This is a "},
                    {"text": "test", "style": "strong"},
                    {"text": " paragraph with "},
                    {"text": "emphasis", "style": "emphasis"},
                    {"text": " and "},
                    {"text": "inline_code()", "style": "code"},
                    {"text": "."},
                ]},
                {"kind": "list_item", "depth": 1, "text": "First item"},
                {"kind": "list_item", "depth": 2, "text": "Nested item"},
                {"kind": "quote", "text": "A quoted remark."},
                {"kind": "heading", "level": 2, "text": "Installing"},
            ] + filler},
            {"title": "Blank page", "blocks": [], "empty": True},
            {"title": "", "blocks": [
                {"kind": "heading", "level": 1, "text": "Code Samples"},
                {"kind": "paragraph", "text": "The function below adds two numbers."},
                {"kind": "code", "language": "python", "lines": [
                    "def add(a, b):",
                    "\treturn a + b",
                    "# " + "a very long comment " * 8,
                ]},
                {"kind": "heading", "level": 3, "text": "Unicode"},
                {"kind": "paragraph", "text": "漢字とかな and café sit side by side."},
            ]},
        ],
    }


def write_book(directory, data, name="book.json"):
    path = os.path.join(str(directory), name)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False)
    return path


@pytest.fixture
def scenario_document():
    return Document.from_parsed(scenario_data(), identity="scenario")


@pytest.fixture
def sample_document():
    return Document.from_parsed(sample_data(), identity="sample")


@pytest.fixture
def sample_book(tmp_path):
    """A parsed-book JSON file on disk."""
    return write_book(tmp_path, sample_data())


@pytest.fixture
def scenario_book(tmp_path):
    return write_book(tmp_path, scenario_data(), "scenario.json")


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point $HOME at an empty directory so no real state is touched."""
    home = tmp_path / "home"
    (home / ".config").mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("USERPROFILE", raising=False)
    return home


@pytest.fixture
def config_dir(isolated_home):
    return str(isolated_home / ".config" / "termreader")


@pytest.fixture
def store(config_dir):
    return StateStore(config_dir)


@pytest.fixture
def reader_env(isolated_home):
    env = dict(os.environ)
    env.update({"HOME": str(isolated_home), "TERM": "xterm", "LANG": "C.UTF-8", "LC_ALL": "C.UTF-8"})
    return env


def spawn_reader(book, env, term="xterm"):
    env = dict(env, TERM=term)
    proc = pexpect.spawn(sys.executable, ["-m", "termreader", book],
                         env=env, timeout=10, dimensions=(24, 80))
    proc.expect("Getting", timeout=5)
    return proc


@pytest.fixture
def termreader_process(sample_book, reader_env):
    """Start the curses reader on the sample book (8 color xterm)."""
    proc = spawn_reader(sample_book, reader_env)

    yield proc

    if proc.isalive():
        proc.terminate(force=True)
