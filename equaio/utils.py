"""
Text helpers for displaying expressions.

Variables are traditionally typeset in italics. ``convert_mathvar`` maps
ASCII letters to the Unicode Mathematical Italic block and the ASCII hyphen
to a proper minus sign:

    convert_mathvar("x - y")  -> "𝑥 − 𝑦"
"""

from typing import Iterable, Optional

# Start of the Mathematical Italic capital / small letters
ITALIC_CAPITAL_A = 0x1D434
ITALIC_SMALL_A = 0x1D44E
MINUS_SIGN = "−"

# Italic small h is a reserved hole in the block; Planck constant stands in
_HOLES = {"h": "ℎ"}


def convert_mathvar_char(c: str) -> str:
    if c in _HOLES:
        return _HOLES[c]
    if "a" <= c <= "z":
        return chr(ITALIC_SMALL_A + ord(c) - ord("a"))
    if "A" <= c <= "Z":
        return chr(ITALIC_CAPITAL_A + ord(c) - ord("A"))
    if c == "-":
        return MINUS_SIGN
    return c


def convert_mathvar(text: str, variables: Optional[Iterable[str]] = None) -> str:
    """
    Convert text to mathematical italics.

    Args:
        text: Display text, e.g. the output of format_block
        variables: If given, only whole words in this collection are
            italicized (so constants such as ``true`` stay upright);
            minus signs are converted either way

    Returns:
        The converted text
    """
    if variables is None:
        return "".join(convert_mathvar_char(c) for c in text)

    names = set(variables)
    out = []
    word = ""
    for c in text + " ":
        if c.isalnum() or c == "_":
            word += c
            continue
        if word:
            out.append("".join(convert_mathvar_char(w) for w in word) if word in names else word)
            word = ""
        out.append(MINUS_SIGN if c == "-" else c)
    return "".join(out)[:-1]
