"""
Free-text to full-text-engine query translation shared by both backends.

Both SQLite FTS5 and Sphinx extended syntax treat a double-quoted word as
a literal phrase, so quoting every word gives the same AND-of-words
semantics on either engine and keeps operators in user input inert.
"""

import re

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def build_match_expression(query: str) -> str:
    """Turn free text into a match expression requiring every word.

    Punctuation is dropped, so ``-``, ``:``, ``@``, ``|``, ``/``, ``!``,
    ``NEAR(`` and unbalanced quotes can never be parsed as query syntax.
    Returns ``""`` when the input has no words.
    """
    tokens = _TOKEN_RE.findall(query)
    return " ".join(f'"{token}"' for token in tokens)
