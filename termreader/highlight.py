"""Pygments token lookup for code blocks.

Code block text is never changed: every character of a block gets the name
of the Pygments token it belongs to, and the renderer turns that name into
a color with get_token_color().
"""

import logging

from pygments.lexers import get_lexer_by_name, guess_lexer, TextLexer
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)

LEXER_OPTIONS = {"stripnl": False, "stripall": False, "ensurenl": False, "tabsize": 0}

# Format: token name -> (dark_theme_rgb, light_theme_rgb)
TOKEN_COLORS = {
    "Keyword": ((0, 150, 255), (0, 50, 200)),
    "Keyword.Type": ((100, 200, 255), (0, 100, 180)),
    "Name.Class": ((255, 255, 0), (180, 140, 0)),
    "Name.Function": ((255, 255, 0), (180, 140, 0)),
    "Name.Builtin": ((255, 100, 255), (150, 0, 150)),
    "Name.Exception": ((255, 100, 0), (200, 50, 0)),
    "Name.Decorator": ((255, 100, 255), (150, 0, 150)),
    "Name.Tag": ((0, 150, 255), (0, 50, 200)),
    "Name.Attribute": ((255, 255, 0), (180, 140, 0)),
    "Name.Variable": ((0, 255, 255), (0, 150, 150)),
    "Name.Constant": ((255, 165, 0), (180, 90, 0)),
    "Literal.String": ((0, 255, 0), (0, 140, 0)),
    "Literal.Number": ((255, 165, 0), (180, 90, 0)),
    "Comment.Preproc": ((255, 255, 255), (50, 50, 50)),
    "Comment": ((128, 128, 128), (100, 100, 100)),
    "Operator": ((255, 100, 255), (150, 0, 150)),
    "Punctuation": ((255, 255, 0), (180, 140, 0)),
    "Error": ((255, 0, 0), (200, 0, 0)),
}
DEFAULT_COLOR = ((255, 255, 255), (50, 50, 50))


def get_lexer(code_text, hint_lang=None):
    """Lexer for a code block: the language hint first, then a guess."""
    if hint_lang:
        try:
            return get_lexer_by_name(hint_lang, **LEXER_OPTIONS)
        except ClassNotFound:
            logger.debug("no lexer for language hint %r", hint_lang)
    if not code_text.strip():
        return TextLexer(**LEXER_OPTIONS)
    try:
        lexer = guess_lexer(code_text)
    except ClassNotFound:
        return TextLexer(**LEXER_OPTIONS)
    return lexer.__class__(**LEXER_OPTIONS)


def token_names(code_text, hint_lang=None):
    """One token name per character of code_text ("" where unknown).

    If the lexer does not reproduce the text exactly, every character
    falls back to plain text rather than being mislabelled.
    """
    names = []
    lexer = get_lexer(code_text, hint_lang)
    for token_type, value in lexer.get_tokens(code_text):
        name = str(token_type)
        if name.startswith("Token."):
            name = name[6:]
        names.extend([name] * len(value))
    if len(names) != len(code_text):
        logger.debug("lexer %s changed text length (%d != %d), dropping tokens",
                     lexer.name, len(names), len(code_text))
        return [""] * len(code_text)
    return names


def get_token_color(token_name, light=False):
    """RGB color for a token name, longest known prefix wins."""
    name = token_name or ""
    while name:
        if name in TOKEN_COLORS:
            return TOKEN_COLORS[name][1 if light else 0]
        if "." not in name:
            break
        name = name.rsplit(".", 1)[0]
    return DEFAULT_COLOR[1 if light else 0]
