"""Text analysis shared by indexing and query parsing.

Both the :class:`~record_search.search.document.TermGenerator` (write time)
and the :class:`~record_search.search.query.QueryParser` (query time) run
text through the same :class:`TextAnalyzer`, so a word is tokenized,
lowercased, stopped and stemmed identically on both sides.

Positions are assigned by the tokenizer and are *not* renumbered after
stopwords are removed: a dropped stopword leaves a gap, which keeps phrase
offsets identical between a document and a quoted query.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, replace
import re
from typing import Protocol


STEM_PREFIX = "Z"


@dataclass(frozen=True)
class Token:
    """One word of analyzed text; ``position`` counts words from zero."""

    text: str
    position: int
    start_char: int
    end_char: int


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class RegexTokenizer:
    """Regex-based tokenizer that yields word tokens with zero-based positions."""

    def __init__(self, pattern: str = r"\w+(?:'\w+)*", flags: int = re.UNICODE) -> None:
        self.pattern = re.compile(pattern, flags)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text.islower():
                yield token
            else:
                yield replace(token, text=token.text.lower())


class StopFilter:
    """Removes stopwords from the stream without renumbering positions."""

    def __init__(self, is_stopword: Callable[[str], bool]) -> None:
        self.is_stopword = is_stopword

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if not self.is_stopword(token.text):
                yield token


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> tuple[list[Token], int]:
        """Return the surviving tokens and the number of tokens before filtering."""
        raw = list(self.tokenizer(text))
        stream: Iterable[Token] = raw
        for token_filter in self.filters:
            stream = token_filter(stream)
        return list(stream), len(raw)


class TextAnalyzer:
    """Tokenizer, stopper and stemmer bundle for one schema.

    Args:
        stemmer: Callable reducing a lowercased word to its stem, or None.
        stopper: Callable returning True for stopwords, or None.
    """

    def __init__(
        self,
        stemmer: Callable[[str], str] | None = None,
        stopper: Callable[[str], bool] | None = None,
    ) -> None:
        self.stemmer = stemmer
        self.stopper = stopper
        filters: list[TokenFilter] = [LowercaseFilter()]
        if stopper is not None:
            filters.append(StopFilter(stopper))
        self.pipeline = AnalyzerPipeline(RegexTokenizer(), filters)

    def __call__(self, text: str) -> list[Token]:
        return self.analyze(text)[0]

    def analyze(self, text: str) -> tuple[list[Token], int]:
        """Return the surviving tokens and the number of words seen.

        The word count includes stopwords, so callers can advance their term
        position past trailing stopwords.
        """
        return self.pipeline(text)

    def is_stopword(self, word: str) -> bool:
        return self.stopper is not None and self.stopper(word)

    def positional_term(self, word: str, prefix: str = "") -> str:
        return prefix + word

    def stemmed_term(self, word: str, prefix: str = "") -> str | None:
        """Return the stemmed term for ``word`` or None without a stemmer."""
        if self.stemmer is None:
            return None
        return STEM_PREFIX + prefix + self.stemmer(word)
