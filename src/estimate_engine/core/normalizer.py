"""
Input normalization for raw estimate text.
"""

import re

CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
UNICODE_SPACES = re.compile("[\u00a0\u2000-\u200a\u202f\u205f\u3000]")
ZERO_WIDTH = re.compile("[\u200b-\u200d\ufeff]")


def normalize_text(text: str) -> str:
    """
    Normalize raw estimate text without disturbing column structure.

    Line endings become ``\\n``, exotic spaces become ASCII spaces, control
    characters other than tab and newline are removed, and trailing
    whitespace is stripped per line. Interior runs of spaces are kept
    because fixed-width and space-separated layouts depend on them.
    """
    if not text:
        return ""

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = ZERO_WIDTH.sub("", text)
    text = UNICODE_SPACES.sub(" ", text)
    text = CONTROL_CHARS.sub("", text)
    return "\n".join(line.rstrip() for line in text.split("\n"))
