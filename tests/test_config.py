"""Test the config directory and user settings."""

import json
import os

import pytest

from termreader.config import DEFAULTS, default_config_dir, load_config, next_width_preset, save_config, text_width


class TestConfigDir:
    """Test where state is kept."""

    def test_xdg_style(self, isolated_home):
        assert default_config_dir() == os.path.join(str(isolated_home), ".config", "termreader")

    def test_without_dot_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert default_config_dir() == os.path.join(str(tmp_path), ".termreader")

    def test_windows_profile(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HOME", raising=False)
        monkeypatch.setenv("USERPROFILE", str(tmp_path))
        assert default_config_dir() == os.path.join(str(tmp_path), ".termreader")

    def test_nowhere(self, monkeypatch):
        monkeypatch.delenv("HOME", raising=False)
        monkeypatch.delenv("USERPROFILE", raising=False)
        assert default_config_dir() is None


class TestSettings:
    """Test reading and writing config.json."""

    def write(self, config_dir, content):
        os.makedirs(config_dir, exist_ok=True)
        with open(os.path.join(config_dir, "config.json"), "w") as f:
            f.write(content)

    def test_defaults(self, config_dir):
        assert load_config(config_dir) == DEFAULTS
        assert load_config(None) == DEFAULTS

    def test_round_trip(self, config_dir):
        save_config(config_dir, {"max_width": 120, "colorscheme": "light", "other": 1})
        with open(os.path.join(config_dir, "config.json")) as f:
            assert json.load(f) == {"max_width": 120, "colorscheme": "light"}
        assert load_config(config_dir) == {"max_width": 120, "colorscheme": "light"}

    @pytest.mark.parametrize("stored, expected", [(500, 200), (10, 40), (64, 64), ("wide", None), (None, None)])
    def test_max_width_is_clamped(self, config_dir, stored, expected):
        self.write(config_dir, json.dumps({"max_width": stored}))
        assert load_config(config_dir)["max_width"] == expected

    def test_unknown_colorscheme(self, config_dir):
        self.write(config_dir, json.dumps({"colorscheme": "purple"}))
        assert load_config(config_dir)["colorscheme"] == "default"

    @pytest.mark.parametrize("content", ["{ broken", "[1, 2]"])
    def test_unreadable_file(self, config_dir, content):
        self.write(config_dir, content)
        assert load_config(config_dir) == DEFAULTS


class TestTextWidth:
    """Test how many columns of text a terminal gets."""

    @pytest.mark.parametrize("cols, config, expected", [
        (80, None, 72),
        (200, None, 100),
        (200, {"max_width": 120}, 120),
        (24, None, 20),
        (10, None, 10),
    ])
    def test_text_width(self, cols, config, expected):
        assert text_width(cols, config) == expected

    def test_presets_cycle(self):
        assert next_width_preset(60) == 80
        assert next_width_preset(80) == 100
        assert next_width_preset(100) == 120
        assert next_width_preset(120) == 80
