"""
Tag key naming styles.

Kept free of project imports so that ``config`` can normalise its built-in
tag keys while it is being loaded.
"""

import re
from typing import List

KEY_STYLES = ("pascal", "camel", "kebab", "snake")

KEY_STYLE_PATTERNS = {
    "pascal": re.compile(r"^[A-Z][A-Za-z0-9]*$"),
    "camel": re.compile(r"^[a-z][A-Za-z0-9]*$"),
    "kebab": re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$"),
    "snake": re.compile(r"^[a-z0-9]+(_[a-z0-9]+)*$"),
}

_SEPARATORS = re.compile(r"[-_\s.]+")
_WORDS = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")


def split_words(key: str) -> List[str]:
    """Split a tag key written in any convention into its words."""
    words = []
    for chunk in _SEPARATORS.split(key):
        words.extend(_WORDS.findall(chunk))
    return words


def normalize_key(key: str, style: str = "pascal") -> str:
    """
    Rewrite a tag key in the given naming style.

    ``cost-center``, ``cost_center``, ``costCenter`` and ``CostCenter`` all
    normalise to ``CostCenter`` in pascal style. Acronyms such as ``AWS`` are
    kept upper-case in pascal and camel styles.
    """
    words = split_words(key)
    if not words:
        return key

    if style in ("kebab", "snake"):
        separator = "-" if style == "kebab" else "_"
        return separator.join(word.lower() for word in words)

    def title(word: str) -> str:
        if len(word) > 1 and word.isupper():
            return word
        return word[:1].upper() + word[1:].lower()

    if style == "pascal":
        return "".join(title(word) for word in words)
    if style == "camel":
        return words[0].lower() + "".join(title(word) for word in words[1:])
    raise ValueError(f"Unknown tag key style: {style}")


def canonical_key(key: str) -> str:
    """Key with case and separators removed, used to spot near-duplicates."""
    return "".join(split_words(key)).lower()
