# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Fuzzy free-text search over admin entities.

A query string is analysed into terms (lower-cased, split on anything that
is not a letter or digit, English stop words removed). An entity matches
when any query term is within a small edit distance of any term of its
indexed fields. Equality filters narrow the candidate rows in SQL before
scoring, and the result is windowed like a browse.

Assumptions:
- Indexed fields are dotted attribute paths; collections are walked and
  dict values (identity claims) are indexed by their values
- A query with no term left after analysis is a bad request
- Edit distance allowed: 0 for terms under 3 characters, 1 up to 5, else 2
- Matches are ordered by score (exact hits first), then created_date, then id
"""
import enum
import re
from typing import Any, Iterable, Optional

from sqlalchemy.orm import RelationshipProperty, Session, selectinload

from roo.errors import BadRequestError

STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "if",
    "in", "into", "is", "it", "no", "not", "of", "on", "or", "such", "that",
    "the", "their", "then", "there", "these", "they", "this", "to", "was",
    "will", "with",
})

_TOKEN_PATTERN = re.compile(r"[^\W_]+", re.UNICODE)


def analyze(text: Optional[str]) -> list[str]:
    """Split text into lower-cased index terms without stop words."""
    if not text:
        return []
    return [term for term in _TOKEN_PATTERN.findall(text.lower()) if term not in STOP_WORDS]


def max_edits(term: str) -> int:
    if len(term) < 3:
        return 0
    if len(term) < 6:
        return 1
    return 2


def edit_distance(left: str, right: str, limit: int) -> int:
    """Levenshtein distance, cut short once it exceeds limit.
    
    Returns:
        int: The distance, or limit + 1 if it is larger than limit
    """
    if abs(len(left) - len(right)) > limit:
        return limit + 1
    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        if min(current) > limit:
            return limit + 1
        previous = current
    return previous[-1]


def resolve_path(entity: Any, path: str) -> list[Any]:
    """Collect the values reached by a dotted attribute path.
    
    Lists are flattened at every step and missing values are dropped, so
    "identities.claims" yields every claims dict of every identity.
    """
    values = [entity]
    for part in path.split("."):
        next_values = []
        for value in values:
            attribute = getattr(value, part, None)
            if attribute is None:
                continue
            if isinstance(attribute, (list, tuple, set)):
                next_values.extend(item for item in attribute if item is not None)
            else:
                next_values.append(attribute)
        values = next_values
    return values


def _field_text(values: Iterable[Any]) -> Iterable[str]:
    for value in values:
        if isinstance(value, dict):
            yield from _field_text(value.values())
        elif isinstance(value, (list, tuple)):
            yield from _field_text(value)
        elif isinstance(value, enum.Enum):
            yield str(value.value)
        else:
            yield str(value)


def _criterion(model, path: str, value: Any):
    """Translate an equality filter on a dotted path into a SQL criterion.
    
    "owner" uses the model's owned_by clause; relationships are compared by
    identity, collections by membership, and dotted paths walk relationships.
    """
    if path == "owner":
        return model.owned_by(value)
    head, _, rest = path.partition(".")
    attribute = getattr(model, head)
    prop = attribute.property
    if rest:
        inner = _criterion(prop.mapper.class_, rest, value)
        return attribute.any(inner) if prop.uselist else attribute.has(inner)
    if isinstance(prop, RelationshipProperty) and prop.uselist:
        return attribute.contains(value)
    return attribute == value


def _eager_options(model, fields: list[str]) -> list:
    options = []
    for field in fields:
        attribute = getattr(model, field.partition(".")[0])
        if isinstance(attribute.property, RelationshipProperty):
            options.append(selectinload(attribute))
    return options


class FuzzyQuery:
    """A prepared fuzzy query over one model."""

    def __init__(self, session: Session, model, fields: list[str], terms: list[str]):
        self.session = session
        self.model = model
        self.fields = fields
        self.terms = terms
        self.criteria: list = []
        self.offset = 0
        self.limit: Optional[int] = None

    def set_window(self, offset: int, limit: int) -> "FuzzyQuery":
        self.offset = offset
        self.limit = limit
        return self

    def add_equality_filter(self, path: str, value: Any) -> "FuzzyQuery":
        """Require the value at path (or one of the values) to equal value."""
        self.criteria.append(_criterion(self.model, path, value))
        return self

    def score(self, entity: Any) -> int:
        """Score an entity: 2 per exact term hit, 1 per fuzzy hit, 0 if no hit."""
        document_terms = set()
        for field in self.fields:
            for text in _field_text(resolve_path(entity, field)):
                document_terms.update(analyze(text))
        
        total = 0
        for term in self.terms:
            if term in document_terms:
                total += 2
                continue
            limit = max_edits(term)
            if limit and any(edit_distance(term, candidate, limit) <= limit for candidate in document_terms):
                total += 1
        return total

    def execute(self) -> tuple[list, int]:
        """Run the query.
        
        Returns:
            tuple: (entities in the window, total number of matches)
        """
        candidates = (
            self.session.query(self.model)
            .options(*_eager_options(self.model, self.fields))
            .filter(*self.criteria)
        )
        scored = []
        for entity in candidates:
            points = self.score(entity)
            if points:
                scored.append((points, entity))
        
        scored.sort(key=lambda pair: (-pair[0], pair[1].created_date, pair[1].id))
        matches = [entity for _, entity in scored]
        end = None if self.limit is None else self.offset + self.limit
        return matches[self.offset:end], len(matches)


class SearchIndex:
    """Entry point for fuzzy queries against a session."""

    def __init__(self, session: Session):
        self.session = session

    def fuzzy_query(self, model, fields: list[str], text: Optional[str]) -> FuzzyQuery:
        """Prepare a fuzzy query.
        
        Args:
            model: Model class to search
            fields: Dotted attribute paths to match against
            text: Raw query string
            
        Returns:
            FuzzyQuery: Query handle to filter, window and execute
            
        Raises:
            BadRequestError: If the text contains no searchable term
        """
        terms = analyze(text)
        if not terms:
            raise BadRequestError("The search query must contain at least one searchable term.")
        return FuzzyQuery(self.session, model, fields, terms)
