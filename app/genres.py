"""Canonical genre vocabulary and label normalisation."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class GenreRule:
    """Maps a family of raw labels onto one canonical genre.

    Every entry of ``required`` is a group of substrings; a lower-cased label
    matches the rule when it contains at least one substring of each group.
    """

    canonical: str
    required: tuple[tuple[str, ...], ...]


# Checked in order, first match wins.
GENRE_RULES: tuple[GenreRule, ...] = (
    GenreRule("Science Fiction", (("sci",), ("fi", "fiction"))),
    GenreRule("Comedy", (("comedy",),)),
    GenreRule("Drama", (("drama",),)),
    GenreRule("Romance", (("romance",),)),
    GenreRule("Family", (("family",),)),
    GenreRule("Action", (("action",),)),
    GenreRule("Adventure", (("adventure",),)),
    GenreRule("Animation", (("animation",),)),
    GenreRule("Crime", (("crime",),)),
    GenreRule("Documentary", (("documentary",),)),
    GenreRule("Fantasy", (("fantasy",),)),
    GenreRule("History", (("history",),)),
    GenreRule("Horror", (("horror",),)),
    GenreRule("Music", (("music",),)),
    GenreRule("Mystery", (("mystery",),)),
    GenreRule("Thriller", (("thriller",),)),
    GenreRule("War", (("war",),)),
    GenreRule("Western", (("western",),)),
)

CANONICAL_GENRES: tuple[str, ...] = tuple(
    sorted(rule.canonical for rule in GENRE_RULES)
)

_SEPARATORS_RE = re.compile(r"[_-]+")
_WHITESPACE_RE = re.compile(r"\s+")


def _capitalise_word(word: str) -> str:
    if word.isupper() and len(word) <= 3:
        return word
    return word[:1].upper() + word[1:].lower()


def canonicalize_genre(label: object) -> str | None:
    """Return the canonical spelling for ``label`` or ``None`` when empty."""

    if label is None:
        return None
    text = _SEPARATORS_RE.sub(" ", str(label))
    text = _WHITESPACE_RE.sub(" ", text).strip()
    if not text:
        return None

    lowered = text.lower()
    for rule in GENRE_RULES:
        if all(any(part in lowered for part in group) for group in rule.required):
            return rule.canonical

    return " ".join(_capitalise_word(word) for word in text.split(" "))


def canonicalize_genres(labels: object) -> tuple[str, ...]:
    """Canonicalise a sequence of labels, dropping blanks and duplicates."""

    if not isinstance(labels, (list, tuple)):
        return ()
    seen: list[str] = []
    for label in labels:
        canonical = canonicalize_genre(label)
        if canonical and canonical not in seen:
            seen.append(canonical)
    return tuple(seen)
