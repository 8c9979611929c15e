"""Where state lives and the few user settings.

    <config dir>/config.json    {"max_width": 100, "colorscheme": "dark"}
    <config dir>/books/         one state blob per book (see state.py)
    <config dir>/debug.log      written with --debug
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

MIN_MAX_WIDTH = 40
MAX_MAX_WIDTH = 200
DEFAULT_MAX_WIDTH = 100
MIN_TEXT_WIDTH = 20
MARGIN = 8
WIDTH_PRESETS = (80, 100, 120)
COLORSCHEMES = ("default", "dark", "light")

DEFAULTS = {"max_width": None, "colorscheme": "default"}


def default_config_dir():
    if os.getenv("HOME") is not None:
        home = os.getenv("HOME")
        if os.path.isdir(os.path.join(home, ".config")):
            return os.path.join(home, ".config", "termreader")
        return os.path.join(home, ".termreader")
    elif os.getenv("USERPROFILE") is not None:
        return os.path.join(os.getenv("USERPROFILE"), ".termreader")
    return None


def clamp_max_width(value):
    if value is None:
        return None
    try:
        value = int(value)
    except (TypeError, ValueError):
        logger.warning("ignoring max_width %r", value)
        return None
    return min(MAX_MAX_WIDTH, max(MIN_MAX_WIDTH, value))


def load_config(config_dir):
    config = dict(DEFAULTS)
    if config_dir is None:
        return config
    path = os.path.join(config_dir, "config.json")
    if not os.path.exists(path):
        return config
    try:
        with open(path, "r", encoding="utf-8") as f:
            stored = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("cannot read %s, using defaults: %s", path, e)
        return config
    if not isinstance(stored, dict):
        logger.warning("%s is not a JSON object, using defaults", path)
        return config
    config["max_width"] = clamp_max_width(stored.get("max_width"))
    if stored.get("colorscheme") in COLORSCHEMES:
        config["colorscheme"] = stored["colorscheme"]
    return config


def save_config(config_dir, config):
    if config_dir is None:
        return
    os.makedirs(config_dir, exist_ok=True)
    with open(os.path.join(config_dir, "config.json"), "w", encoding="utf-8") as f:
        json.dump({key: config.get(key) for key in DEFAULTS}, f, indent=4)


def text_width(cols, config=None):
    """Columns of text for a terminal cols wide."""
    max_width = (config or {}).get("max_width") or DEFAULT_MAX_WIDTH
    return max(1, min(cols, max_width, max(MIN_TEXT_WIDTH, cols - MARGIN)))


def next_width_preset(current):
    for preset in WIDTH_PRESETS:
        if preset > current:
            return preset
    return WIDTH_PRESETS[0]
