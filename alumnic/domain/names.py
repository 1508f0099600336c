"""
Name canonicalization and username candidates.

A CanonicalName is a coarse, comparison-ready form of a person's full name:
accents are dropped, cedillas become "c", everything is lowercased and the
particles "de", "da", "do", "dos" and "das" are removed. This makes
"JOSE FELIPE ARAUJO" equal to "José Felipe de Araújo", which is how a
self-reported name is matched against the portal's record.

The same form drives username generation: the given name followed by each
surname either abbreviated to its initial or written in full.
"""

import itertools
import unicodedata
from collections.abc import Iterator
from dataclasses import dataclass

from unidecode import unidecode

PARTICLES = frozenset({"de", "da", "do", "dos", "das"})
MAX_TOKENS = 10
MAX_USERNAME_LENGTH = 19


class NameFormatError(ValueError):
    """Base class for names that cannot be canonicalized."""

    pass


class InvalidCharacter(NameFormatError):
    """Name contains something other than letters (accented or not) and spaces."""

    pass


class TooFewWords(NameFormatError):
    """Fewer than two words remain once particles are removed."""

    pass


@dataclass(frozen=True)
class CanonicalName:
    """Lowercase ASCII tokens: given name first, surnames after."""

    tokens: tuple[str, ...]

    @property
    def given_name(self) -> str:
        return self.tokens[0]

    @property
    def surnames(self) -> tuple[str, ...]:
        return self.tokens[1:]


def _strip_accents(text: str) -> str:
    text = text.replace("ç", "c").replace("Ç", "C")
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(char for char in decomposed if char.isascii())


def canonicalize(raw: str) -> CanonicalName:
    """
    Build the CanonicalName of a free-form full name.

    Args:
        raw: Name as typed by a person or scraped from the portal

    Returns:
        CanonicalName with between 2 and 10 tokens

    Raises:
        InvalidCharacter: A character other than a letter or a space is present
        TooFewWords: Fewer than two words once particles are dropped
    """
    sanitized = _strip_accents(raw).lower()
    if any(not ("a" <= char <= "z" or char == " ") for char in sanitized):
        raise InvalidCharacter(raw)

    tokens = [word for word in sanitized.split() if word not in PARTICLES]
    # Very long names are cut instead of rejected
    tokens = tokens[:MAX_TOKENS]

    if len(tokens) < 2:
        raise TooFewWords(raw)
    return CanonicalName(tuple(tokens))


def username_candidates(name: CanonicalName) -> Iterator[str]:
    """
    Yield usernames for a name, most compact first.

    Each surname is either reduced to its initial or kept whole. The
    combinations are enumerated like a binary counter over the surnames,
    "initial" before "full", the last surname flipping fastest:

        joao carlos pereira silva ->
            joaocps, joaocpsilva, joaocpereiras, joaocpereirasilva,
            joaocarlosps, joaocarlospsilva, joaocarlospereiras

    (joaocarlospereirasilva is dropped: usernames must be under 20
    characters.) Single-letter surnames would repeat candidates, so each
    username is yielded once. Every call returns a fresh iterator.
    """
    choices = [(surname[0], surname) for surname in name.surnames]
    seen: set[str] = set()
    for parts in itertools.product(*choices):
        username = name.given_name + "".join(parts)
        if len(username) <= MAX_USERNAME_LENGTH and username not in seen:
            seen.add(username)
            yield username


def ascii_transliteration(text: str) -> str:
    """
    Plain ASCII rendition of a display name, case and spacing preserved.

    Unlike canonicalization, letters without an ASCII decomposition are
    transliterated rather than dropped: "Łukasz Straße" -> "Lukasz Strasse".
    """
    return unidecode(text)
