"""Fuzzy path similarity used to repair broken cross-references."""

import re

from docport.config.constants import CONTAINMENT_SIMILARITY

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize(value: str) -> str:
    """Lowercase and drop everything that is not a letter or digit."""
    return _NON_ALNUM.sub("", value.lower())


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Score how alike two paths are, in [0, 1].

    Both inputs are normalized first. Identical strings score 1.0, one
    containing the other scores 0.8, anything else scores by edit distance
    relative to the longer string. Two empty strings are identical.
    """
    na, nb = normalize(a), normalize(b)
    if na == nb:
        return 1.0
    if na in nb or nb in na:
        return CONTAINMENT_SIMILARITY

    max_len = max(len(na), len(nb))
    return (max_len - levenshtein_distance(na, nb)) / max_len
