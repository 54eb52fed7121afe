"""Query trees and the free-text query parser.

Grammar, loosest binding first::

    query    := or_expr
    or_expr  := and_expr ("OR" and_expr)*
    and_expr := sequence (("AND" | "AND NOT" | "NOT") sequence)*
    sequence := clause+                      # combined with the default OR
    clause   := ["+" | "-"] atom
    atom     := word | field ":" word | '"' phrase '"' | field ':"' phrase '"'
              | "(" or_expr ")"

Operators must be written in upper case; a lower-case ``and`` is a word.
Within a sequence, ``+word`` is required and ``-word`` excluded. A field name
the parser does not know is kept as ordinary text.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
import logging
import re
from typing import Protocol

from record_search.errors import QueryError
from record_search.search.analyzers import TextAnalyzer, Token
from record_search.search.models import Posting
from record_search.search.phrase import phrase_frequency
from record_search.search.stats import CollectionStats, bm25, calculate_idf


logger = logging.getLogger(__name__)


class PostingSource(Protocol):
    """What a query needs from a store to evaluate itself."""

    def postings(self, term: str) -> list[Posting]:  # pragma: no cover - interface definition
        ...


@dataclass(frozen=True)
class ScoringContext:
    """Collection statistics and BM25 parameters for one evaluation."""

    stats: CollectionStats
    k1: float = 1.2
    b: float = 0.75

    def idf(self, term_freq: int) -> float:
        return calculate_idf(term_freq, self.stats.document_count)

    def term_weight(self, wdf: int, doc_length: int) -> float:
        return bm25(wdf, doc_length, self.stats.average_length, k1=self.k1, b=self.b)


class Query:
    """Base class of parsed query nodes.

    ``evaluate`` returns ``doc_id -> weight`` for every matching document.
    """

    def evaluate(self, source: PostingSource, context: ScoringContext) -> dict[int, float]:
        raise NotImplementedError

    def terms(self) -> tuple[str, ...]:
        """Every term the query reads, in query order."""
        raise NotImplementedError

    @property
    def is_empty(self) -> bool:
        return False


@dataclass(frozen=True)
class MatchNothing(Query):
    def evaluate(self, source: PostingSource, context: ScoringContext) -> dict[int, float]:
        return {}

    def terms(self) -> tuple[str, ...]:
        return ()

    @property
    def is_empty(self) -> bool:
        return True

    def __str__(self) -> str:
        return "Query()"


@dataclass(frozen=True)
class Term(Query):
    term: str
    wqf: int = 1

    def evaluate(self, source: PostingSource, context: ScoringContext) -> dict[int, float]:
        postings = source.postings(self.term)
        idf = context.idf(len(postings))
        return {
            posting.doc_id: self.wqf * idf * context.term_weight(posting.wdf, posting.doc_length)
            for posting in postings
        }

    def terms(self) -> tuple[str, ...]:
        return (self.term,)

    def __str__(self) -> str:
        return self.term


@dataclass(frozen=True)
class Phrase(Query):
    """Positional terms that must occur at fixed offsets from each other."""

    phrase_terms: tuple[str, ...]
    offsets: tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.phrase_terms) != len(self.offsets):
            raise ValueError("Each phrase term needs exactly one offset")

    def evaluate(self, source: PostingSource, context: ScoringContext) -> dict[int, float]:
        by_term = [{posting.doc_id: posting for posting in source.postings(term)} for term in self.phrase_terms]
        if not by_term or not all(by_term):
            return {}
        candidates = set(by_term[0]).intersection(*by_term[1:])
        idfs = [context.idf(len(postings)) for postings in by_term]

        weights: dict[int, float] = {}
        for doc_id in candidates:
            postings = [term_postings[doc_id] for term_postings in by_term]
            frequency = phrase_frequency([posting.positions for posting in postings], self.offsets)
            if frequency:
                doc_length = postings[0].doc_length
                weights[doc_id] = sum(idf * context.term_weight(frequency, doc_length) for idf in idfs)
        return weights

    def terms(self) -> tuple[str, ...]:
        return self.phrase_terms

    def __str__(self) -> str:
        parts = " ".join(f"{term}@{offset}" for term, offset in zip(self.phrase_terms, self.offsets))
        return f"({parts} PHRASE {len(self.phrase_terms)})"


@dataclass(frozen=True)
class And(Query):
    subqueries: tuple[Query, ...]

    def evaluate(self, source: PostingSource, context: ScoringContext) -> dict[int, float]:
        result: dict[int, float] | None = None
        for subquery in self.subqueries:
            matches = subquery.evaluate(source, context)
            if result is None:
                result = matches
            else:
                result = {doc_id: weight + matches[doc_id] for doc_id, weight in result.items() if doc_id in matches}
            if not result:
                return {}
        return result or {}

    def terms(self) -> tuple[str, ...]:
        return tuple(term for subquery in self.subqueries for term in subquery.terms())

    def __str__(self) -> str:
        return "(" + " AND ".join(str(subquery) for subquery in self.subqueries) + ")"


@dataclass(frozen=True)
class Or(Query):
    subqueries: tuple[Query, ...]

    def evaluate(self, source: PostingSource, context: ScoringContext) -> dict[int, float]:
        result: dict[int, float] = {}
        for subquery in self.subqueries:
            for doc_id, weight in subquery.evaluate(source, context).items():
                result[doc_id] = result.get(doc_id, 0.0) + weight
        return result

    def terms(self) -> tuple[str, ...]:
        return tuple(term for subquery in self.subqueries for term in subquery.terms())

    def __str__(self) -> str:
        return "(" + " OR ".join(str(subquery) for subquery in self.subqueries) + ")"


@dataclass(frozen=True)
class AndNot(Query):
    left: Query
    right: Query

    def evaluate(self, source: PostingSource, context: ScoringContext) -> dict[int, float]:
        matches = self.left.evaluate(source, context)
        if not matches:
            return {}
        excluded = self.right.evaluate(source, context)
        return {doc_id: weight for doc_id, weight in matches.items() if doc_id not in excluded}

    def terms(self) -> tuple[str, ...]:
        return self.left.terms() + self.right.terms()

    def __str__(self) -> str:
        return f"({self.left} AND_NOT {self.right})"


@dataclass(frozen=True)
class AndMaybe(Query):
    """Matches ``left``; ``right`` only adds weight where it also matches."""

    left: Query
    right: Query

    def evaluate(self, source: PostingSource, context: ScoringContext) -> dict[int, float]:
        matches = self.left.evaluate(source, context)
        if not matches:
            return {}
        bonus = self.right.evaluate(source, context)
        return {doc_id: weight + bonus.get(doc_id, 0.0) for doc_id, weight in matches.items()}

    def terms(self) -> tuple[str, ...]:
        return self.left.terms() + self.right.terms()

    def __str__(self) -> str:
        return f"({self.left} AND_MAYBE {self.right})"


class _Kind(Enum):
    WORD = "word"
    PHRASE = "phrase"
    LPAREN = "("
    RPAREN = ")"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    PLUS = "+"
    MINUS = "-"


@dataclass(frozen=True)
class _Lexeme:
    kind: _Kind
    text: str = ""
    field: str | None = None


_OPERATORS = {"AND": _Kind.AND, "OR": _Kind.OR, "NOT": _Kind.NOT}
_CLAUSE_START = {_Kind.WORD, _Kind.PHRASE, _Kind.LPAREN, _Kind.PLUS, _Kind.MINUS}
_FIELD_RE = re.compile(r"(\w+):")
_WORD_RE = re.compile(r'[^\s()"]+')

ROOT_PREFIXES: tuple[str, ...] = ("",)


class QueryParser:
    """Parses free text into a :class:`Query` using a field prefix table.

    Args:
        prefixes: Field name -> term prefixes searched for ``name:term``.
        stemmer: Stemmer used for plain words, or None.
        stopper: Stopword test, or None.
    """

    def __init__(
        self,
        prefixes: Mapping[str, Sequence[str]] | None = None,
        stemmer: Callable[[str], str] | None = None,
        stopper: Callable[[str], bool] | None = None,
    ) -> None:
        self.prefixes: dict[str, tuple[str, ...]] = {}
        for name, field_prefixes in (prefixes or {}).items():
            for prefix in field_prefixes:
                self.add_prefix(name, prefix)
        self.analyzer = TextAnalyzer(stemmer, stopper)
        self._query_text = ""
        self._lexemes: list[_Lexeme] = []
        self._index = 0

    def add_prefix(self, name: str, prefix: str) -> None:
        existing = self.prefixes.get(name, ())
        if prefix not in existing:
            self.prefixes[name] = existing + (prefix,)

    def parse_query(self, text: str) -> Query:
        """Parse ``text``.

        Raises:
            QueryError: the text is malformed.
        """
        self._query_text = text
        self._lexemes = self._lex(text)
        self._index = 0
        if not self._lexemes:
            return MatchNothing()

        query = self._parse_or()
        if self._index < len(self._lexemes):
            lexeme = self._lexemes[self._index]
            if lexeme.kind is _Kind.RPAREN:
                raise QueryError("Unbalanced parentheses", text)
            raise QueryError(f"Unexpected '{lexeme.text or lexeme.kind.value}'", text)

        parsed = query if query is not None else MatchNothing()
        logger.debug("Parsed %r as %s", text, parsed)
        return parsed

    def _lex(self, text: str) -> list[_Lexeme]:
        lexemes: list[_Lexeme] = []
        index = 0
        length = len(text)
        while index < length:
            char = text[index]
            if char.isspace():
                index += 1
                continue
            if char == "(":
                lexemes.append(_Lexeme(_Kind.LPAREN))
                index += 1
                continue
            if char == ")":
                lexemes.append(_Lexeme(_Kind.RPAREN))
                index += 1
                continue
            if char == '"':
                phrase, index = self._read_phrase(text, index)
                lexemes.append(_Lexeme(_Kind.PHRASE, phrase))
                continue
            if char in "+-":
                following = text[index + 1 : index + 2]
                if not following or following.isspace() or following == ")":
                    raise QueryError(f"Dangling '{char}'", text)
                lexemes.append(_Lexeme(_Kind.PLUS if char == "+" else _Kind.MINUS, char))
                index += 1
                continue

            field_match = _FIELD_RE.match(text, index)
            if field_match and field_match.group(1) in self.prefixes:
                name = field_match.group(1)
                index = field_match.end()
                if text.startswith('"', index):
                    phrase, index = self._read_phrase(text, index)
                    if not phrase.strip():
                        raise QueryError(f"Field '{name}' has an empty term", text)
                    lexemes.append(_Lexeme(_Kind.PHRASE, phrase, name))
                    continue
                word_match = _WORD_RE.match(text, index)
                if word_match is None:
                    raise QueryError(f"Field '{name}' has an empty term", text)
                lexemes.append(_Lexeme(_Kind.WORD, word_match.group(0), name))
                index = word_match.end()
                continue

            word_match = _WORD_RE.match(text, index)
            assert word_match is not None
            word = word_match.group(0)
            lexemes.append(_Lexeme(_OPERATORS.get(word, _Kind.WORD), word))
            index = word_match.end()
        return lexemes

    def _read_phrase(self, text: str, index: int) -> tuple[str, int]:
        end = text.find('"', index + 1)
        if end < 0:
            raise QueryError("Unterminated phrase", text)
        return text[index + 1 : end], end + 1

    def _peek(self) -> _Lexeme | None:
        if self._index < len(self._lexemes):
            return self._lexemes[self._index]
        return None

    def _advance(self) -> _Lexeme:
        lexeme = self._lexemes[self._index]
        self._index += 1
        return lexeme

    def _parse_or(self) -> Query | None:
        left = self._parse_and()
        while (lexeme := self._peek()) is not None and lexeme.kind is _Kind.OR:
            self._advance()
            right = self._parse_and()
            left = _combine(Or, left, right)
        return left

    def _parse_and(self) -> Query | None:
        left = self._parse_sequence()
        while (lexeme := self._peek()) is not None and lexeme.kind in (_Kind.AND, _Kind.NOT):
            negate = self._advance().kind is _Kind.NOT
            following = self._peek()
            if not negate and following is not None and following.kind is _Kind.NOT:
                self._advance()
                negate = True
            right = self._parse_sequence()
            if negate:
                left = AndNot(left, right) if left is not None and right is not None else left
            else:
                left = _combine(And, left, right)
        return left

    def _parse_sequence(self) -> Query | None:
        required: list[Query] = []
        optional: list[Query] = []
        excluded: list[Query] = []
        seen = 0
        while (lexeme := self._peek()) is not None and lexeme.kind in _CLAUSE_START:
            seen += 1
            modifier = None
            if lexeme.kind in (_Kind.PLUS, _Kind.MINUS):
                modifier = self._advance().kind
            clause = self._parse_atom()
            if clause is None:
                continue
            if modifier is _Kind.PLUS:
                required.append(clause)
            elif modifier is _Kind.MINUS:
                excluded.append(clause)
            else:
                optional.append(clause)

        if not seen:
            lexeme = self._peek()
            found = "end of query" if lexeme is None else f"'{lexeme.text or lexeme.kind.value}'"
            raise QueryError(f"Expected a term but found {found}", self._query_text)

        query: Query | None = None
        if required:
            query = _group(And, required)
            if optional:
                query = AndMaybe(query, _group(Or, optional))
        elif optional:
            query = _group(Or, optional)
        if query is not None and excluded:
            query = AndNot(query, _group(Or, excluded))
        return query

    def _parse_atom(self) -> Query | None:
        lexeme = self._peek()
        if lexeme is None or lexeme.kind not in (_Kind.WORD, _Kind.PHRASE, _Kind.LPAREN):
            raise QueryError("Operator is missing its term", self._query_text)
        self._advance()

        if lexeme.kind is _Kind.LPAREN:
            query = self._parse_or()
            closing = self._peek()
            if closing is None or closing.kind is not _Kind.RPAREN:
                raise QueryError("Unbalanced parentheses", self._query_text)
            self._advance()
            return query

        prefixes = self.prefixes[lexeme.field] if lexeme.field is not None else ROOT_PREFIXES
        if lexeme.kind is _Kind.PHRASE:
            return _group(Or, [q for prefix in prefixes if (q := self._phrase(lexeme.text, prefix)) is not None])
        return _group(Or, [q for prefix in prefixes if (q := self._word(lexeme.text, prefix)) is not None])

    def _word(self, text: str, prefix: str) -> Query | None:
        tokens = self.analyzer(text)
        if not tokens:
            return None
        if len(tokens) > 1:
            # "fish-and-chips" and unknown "field:word" read as phrases.
            return self._phrase_from_tokens(tokens, prefix)
        word = tokens[0].text
        stemmed = self.analyzer.stemmed_term(word, prefix)
        return Term(stemmed if stemmed is not None else self.analyzer.positional_term(word, prefix))

    def _phrase(self, text: str, prefix: str) -> Query | None:
        return self._phrase_from_tokens(self.analyzer(text), prefix)

    def _phrase_from_tokens(self, tokens: Sequence[Token], prefix: str) -> Query | None:
        if not tokens:
            return None
        if len(tokens) == 1:
            return Term(self.analyzer.positional_term(tokens[0].text, prefix))
        start = tokens[0].position
        return Phrase(
            tuple(self.analyzer.positional_term(token.text, prefix) for token in tokens),
            tuple(token.position - start for token in tokens),
        )


def _group(kind: type[And] | type[Or], queries: Iterable[Query]) -> Query | None:
    queries = list(queries)
    if not queries:
        return None
    if len(queries) == 1:
        return queries[0]
    return kind(tuple(queries))


def _combine(kind: type[And] | type[Or], left: Query | None, right: Query | None) -> Query | None:
    if left is None:
        return right
    if right is None:
        return left
    return kind((left, right))
