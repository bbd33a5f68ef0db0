"""
Search filter construction.

Pure functions from typed search options to Qdrant payload filters.
Absent options omit their predicate; an options object with nothing set
yields ``None`` (no filter), never an always-false constraint.

Dependencies: qdrant_client
System role: Filter building for vector and text queries
"""

from collections.abc import Iterable, Sequence

from qdrant_client import models

from rag_pipeline.core.exceptions import ValidationError
from rag_pipeline.models.search import (
    ContentExampleSearchOptions,
    DocumentSearchOptions,
    SocialMediaSearchOptions,
)


def match_value(key: str, value: str | int | bool) -> models.FieldCondition:
    return models.FieldCondition(key=key, match=models.MatchValue(value=value))


def match_any(key: str, values: Sequence[str]) -> models.FieldCondition:
    if not values:
        raise ValidationError("any-of predicate needs at least one value", field=key)
    return models.FieldCondition(key=key, match=models.MatchAny(any=list(values)))


def match_text(key: str, text: str) -> models.FieldCondition:
    return models.FieldCondition(key=key, match=models.MatchText(text=text))


def value_range(key: str, gte: float | None = None, lte: float | None = None) -> models.FieldCondition:
    return models.FieldCondition(key=key, range=models.Range(gte=gte, lte=lte))


def _conditions_to_filter(conditions: list[models.Condition]) -> models.Filter | None:
    return models.Filter(must=conditions) if conditions else None


def build_document_filter(options: DocumentSearchOptions) -> models.Filter | None:
    """
    Build the filter for document chunk collections.

    Args:
        options: Document search options

    Returns:
        models.Filter | None: Conjunction of the set predicates
    """
    conditions: list[models.Condition] = []
    if options.user_id:
        conditions.append(match_value("user_id", options.user_id))
    if options.document_ids:
        conditions.append(match_any("document_id", options.document_ids))
    if options.section:
        conditions.append(match_value("section", options.section))
    if options.source_type:
        conditions.append(match_value("source_type", options.source_type))
    if options.title:
        conditions.append(match_value("title", options.title))
    return _conditions_to_filter(conditions)


def build_content_example_filter(options: ContentExampleSearchOptions) -> models.Filter | None:
    """Filter on example type plus any-of categories and tags."""
    conditions: list[models.Condition] = []
    if options.content_type:
        conditions.append(match_value("type", options.content_type))
    if options.categories:
        conditions.append(match_any("categories", options.categories))
    if options.tags:
        conditions.append(match_any("tags", options.tags))
    return _conditions_to_filter(conditions)


def build_social_media_filter(options: SocialMediaSearchOptions) -> models.Filter | None:
    conditions: list[models.Condition] = []
    if options.platform:
        conditions.append(match_value("platform", options.platform))
    if options.country:
        conditions.append(match_value("country", options.country))
    return _conditions_to_filter(conditions)


def merge_filters(*filters: models.Filter | None) -> models.Filter | None:
    """
    AND-combine filters.

    ``must`` clauses are concatenated; ``should`` and ``must_not`` clauses
    are carried over. Returns None when every input is empty.
    """
    must: list[models.Condition] = []
    should: list[models.Condition] = []
    must_not: list[models.Condition] = []
    for flt in filters:
        if flt is None:
            continue
        must.extend(_as_list(flt.must))
        should.extend(_as_list(flt.should))
        must_not.extend(_as_list(flt.must_not))
    if not (must or should or must_not):
        return None
    return models.Filter(
        must=must or None,
        should=should or None,
        must_not=must_not or None,
    )


def with_conditions(
    base: models.Filter | None,
    *conditions: models.Condition,
) -> models.Filter | None:
    """Return ``base`` extended by extra ``must`` conditions."""
    return merge_filters(base, _conditions_to_filter(list(conditions)))


def _as_list(value: Iterable[models.Condition] | models.Condition | None) -> list[models.Condition]:
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]
