from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import polars as pl

from .fieldmap import FieldMapping
from .schema import CANONICAL_FIELDS, SORT_KEY_FIELDS

LOGGER = logging.getLogger(__name__)

# A strategy inspects one canonical field and returns the matching source
# column, or None to defer to the next strategy.
LookupStrategy = Callable[[str, FieldMapping, Sequence[str]], Optional[str]]


def _find_case_insensitive(name: str, columns: Sequence[str]) -> Optional[str]:
    """First column equal to ``name`` ignoring case, keeping the source spelling."""

    target = name.casefold()
    for column in columns:
        if column.casefold() == target:
            return column
    return None


def match_mapped_column(canonical: str, mapping: FieldMapping, columns: Sequence[str]) -> Optional[str]:
    """Tier 1: the mapped source name (or the canonical name when unmapped)."""

    return _find_case_insensitive(mapping.source_column_for(canonical), columns)


def match_canonical_column(canonical: str, mapping: FieldMapping, columns: Sequence[str]) -> Optional[str]:
    """Tier 2: sources that already use canonical names."""

    return _find_case_insensitive(canonical, columns)


DEFAULT_STRATEGIES: Tuple[Tuple[str, LookupStrategy], ...] = (
    ("mapped", match_mapped_column),
    ("canonical", match_canonical_column),
)


@dataclass(frozen=True)
class ResolvedField:
    canonical: str
    source_column: str
    strategy: str

    @property
    def requires_rename(self) -> bool:
        return self.source_column != self.canonical


@dataclass(frozen=True)
class Projection:
    """Per-load plan: which canonical fields come from which source columns."""

    fields: Tuple[ResolvedField, ...] = ()
    sort_columns: Tuple[str, ...] = ()
    missing: Tuple[str, ...] = field(default=(), compare=False)

    @property
    def wildcard(self) -> bool:
        """No field resolved: materialize every source column verbatim."""

        return not self.fields

    def __contains__(self, canonical: object) -> bool:
        return any(item.canonical == canonical for item in self.fields)

    def source_column(self, canonical: str) -> Optional[str]:
        for item in self.fields:
            if item.canonical == canonical:
                return item.source_column
        return None


def resolve_field(
    canonical: str,
    mapping: FieldMapping,
    columns: Sequence[str],
    strategies: Sequence[Tuple[str, LookupStrategy]] = DEFAULT_STRATEGIES,
) -> Optional[ResolvedField]:
    """Apply the lookup strategies in order; the first hit wins."""

    for name, strategy in strategies:
        matched = strategy(canonical, mapping, columns)
        if matched is not None:
            return ResolvedField(canonical, matched, name)
    return None


def build_projection(
    mapping: FieldMapping,
    source_columns: Sequence[str],
    strategies: Sequence[Tuple[str, LookupStrategy]] = DEFAULT_STRATEGIES,
) -> Projection:
    """Resolve every canonical field against one source schema."""

    columns = [str(c) for c in source_columns]
    resolved: List[ResolvedField] = []
    sort_columns: List[str] = []
    missing: List[str] = []

    for canonical in CANONICAL_FIELDS:
        item = resolve_field(canonical, mapping, columns, strategies)
        if item is None:
            missing.append(canonical)
            continue
        resolved.append(item)
        if canonical in SORT_KEY_FIELDS:
            sort_columns.append(item.source_column)

    return Projection(tuple(resolved), tuple(sort_columns), tuple(missing))


def quote_identifier(name: str) -> str:
    """Double-quote an SQL identifier, escaping embedded quotes."""

    return '"' + name.replace('"', '""') + '"'


def build_select_sql(projection: Projection, source_name: str) -> str:
    """Render the projection as a SELECT the data-source collaborator can run."""

    table = quote_identifier(source_name)
    if projection.wildcard:
        return f"SELECT * FROM {table}"

    clauses = []
    for item in projection.fields:
        if item.requires_rename:
            clauses.append(f"{quote_identifier(item.source_column)} AS {quote_identifier(item.canonical)}")
        else:
            clauses.append(quote_identifier(item.source_column))

    sql = f"SELECT {', '.join(clauses)} FROM {table}"
    if projection.sort_columns:
        sql += " ORDER BY " + ", ".join(quote_identifier(c) for c in projection.sort_columns)
    return sql


def resolve_projection(
    mapping: FieldMapping,
    source_columns: Sequence[str],
    source_name: str,
) -> Tuple[Projection, str]:
    """Compute the projection and matching SELECT for one source."""

    projection = build_projection(mapping, source_columns)
    if projection.wildcard:
        LOGGER.warning("No canonical field matched [%s]; falling back to SELECT *.", source_name)
    else:
        renamed = [f"{f.source_column}->{f.canonical}" for f in projection.fields if f.requires_rename]
        LOGGER.debug("Resolved %d fields for [%s]; renamed: %s", len(projection.fields), source_name, renamed)
        if projection.missing:
            LOGGER.info("Fields not present in [%s]: %s", source_name, ", ".join(projection.missing))
    return projection, build_select_sql(projection, source_name)


def project_frame(df: pl.DataFrame, projection: Projection) -> pl.DataFrame:
    """
    Apply a projection to an in-memory frame.

    Mirrors the SELECT semantics: sort ascending by the identity columns (nulls
    first, stable), then select and alias. Wildcard projections return ``df``
    untouched.
    """

    if projection.wildcard:
        return df

    sort_columns = [c for c in projection.sort_columns if c in df.columns]
    if sort_columns:
        df = df.sort(sort_columns, nulls_last=False, maintain_order=True)

    exprs = [pl.col(item.source_column).alias(item.canonical) for item in projection.fields]
    return df.select(exprs)


__all__ = [
    "DEFAULT_STRATEGIES",
    "LookupStrategy",
    "Projection",
    "ResolvedField",
    "build_projection",
    "build_select_sql",
    "match_canonical_column",
    "match_mapped_column",
    "project_frame",
    "quote_identifier",
    "resolve_field",
    "resolve_projection",
]
