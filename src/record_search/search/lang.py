"""Language resolution: stemmers and stopword lists.

Language data comes from the Snowball stemmers and stopword tables bundled
with Whoosh. Identifiers are matched case-sensitively, exactly as Whoosh
spells them: two-letter codes (``"en"``) or English names
(``"english"``).

Resolved languages are cached for the life of the process and never mutated,
so every schema compiled for the same language shares one stemmer and one
stopword set.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from functools import lru_cache
import logging

from whoosh.lang import NoStemmer, NoStopWords, stemmer_for_language, stopwords_for_language

from record_search.errors import UnsupportedLanguage


logger = logging.getLogger(__name__)


class StopList:
    """Immutable set of stopwords with case-insensitive membership."""

    __slots__ = ("_words",)

    def __init__(self, words: Iterable[str] = ()) -> None:
        self._words = frozenset(word.lower() for word in words)

    @classmethod
    def from_words(cls, words: Iterable[str]) -> StopList:
        return cls(words)

    @classmethod
    def for_language(cls, language: str) -> StopList | None:
        """Return the stopword list for ``language`` or None when Whoosh has none."""
        try:
            return cls(stopwords_for_language(language))
        except NoStopWords:
            return None

    def is_stopword(self, word: str) -> bool:
        return word.lower() in self._words

    __call__ = is_stopword

    def __contains__(self, word: object) -> bool:
        return isinstance(word, str) and self.is_stopword(word)

    def __iter__(self) -> Iterator[str]:
        return iter(self._words)

    def __len__(self) -> int:
        return len(self._words)

    def __repr__(self) -> str:
        return f"StopList({len(self._words)} words)"


class Stemmer:
    """Reduces lowercased words to their stem for one language."""

    __slots__ = ("_stem", "language")

    def __init__(self, language: str, stem: Callable[[str], str]) -> None:
        self.language = language
        self._stem = stem

    @classmethod
    def for_language(cls, language: str) -> Stemmer | None:
        try:
            return cls(language, stemmer_for_language(language))
        except NoStemmer:
            return None

    def __call__(self, word: str) -> str:
        return self._stem(word)

    def __repr__(self) -> str:
        return f"Stemmer({self.language!r})"


@dataclass(frozen=True)
class Language:
    """A resolved language: stemmer plus stopword list."""

    name: str
    stemmer: Stemmer
    stoplist: StopList


@lru_cache(maxsize=None)
def resolve_language(name: str) -> Language:
    """Resolve ``name`` to a stemmer and stopword list.

    Raises:
        UnsupportedLanguage: no stopword list or no stemmer exists for ``name``.
    """
    stoplist = StopList.for_language(name)
    if stoplist is None:
        raise UnsupportedLanguage(name)
    stemmer = Stemmer.for_language(name)
    if stemmer is None:
        raise UnsupportedLanguage(name)
    logger.debug("Resolved language %s (%d stopwords)", name, len(stoplist))
    return Language(name=name, stemmer=stemmer, stoplist=stoplist)
