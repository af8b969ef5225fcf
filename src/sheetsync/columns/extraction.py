"""Column extraction entry point.

extract_columns() runs the full discovery pipeline for one sample record:
PathWalker + SpecialCaseResolvers -> ColumnRegistry. It never raises; a
malformed or unexpected sample degrades to fallback_columns().
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from src.sheetsync.columns.naming import format_column_name
from src.sheetsync.columns.read_only import is_read_only
from src.sheetsync.columns.registry import ColumnRegistry
from src.sheetsync.columns.schemas import Column, EntityType
from src.sheetsync.columns.walker import WalkContext, walk

logger = structlog.get_logger(__name__)

FALLBACK_KEYS: tuple[str, ...] = ("id", "name")
PERSON_FALLBACK_KEYS: tuple[str, ...] = ("email", "phone")


class ColumnExtractionError(Exception):
    """Raised when a sample record cannot be turned into columns."""


def fallback_columns(entity_type: EntityType) -> list[Column]:
    """Minimal hard-coded column set used when extraction fails."""
    keys = FALLBACK_KEYS
    if entity_type is EntityType.PERSONS:
        keys = keys + PERSON_FALLBACK_KEYS
    key_set = frozenset(keys)
    return [
        Column(
            key=key,
            display_name=format_column_name(key),
            read_only=is_read_only(key, entity_type, key_set),
        )
        for key in keys
    ]


def _discover(
    sample: Any,
    field_map: Mapping[str, str],
    entity_type: EntityType,
    hash_min_length: int,
) -> list[Column]:
    if not isinstance(sample, Mapping):
        raise ColumnExtractionError(
            f"Sample record must be an object, got {type(sample).__name__}"
        )

    context = WalkContext(
        field_map=field_map,
        entity_type=entity_type,
        hash_min_length=hash_min_length,
    )
    acc = walk(sample, "", "", context)
    columns = ColumnRegistry(entity_type).register(acc.columns)
    if not columns:
        raise ColumnExtractionError("Sample record produced no columns")
    return columns


def extract_columns(
    sample: Any,
    field_map: Mapping[str, str] | None = None,
    entity_type: EntityType = EntityType.DEALS,
    *,
    hash_min_length: int = 20,
) -> list[Column]:
    """Discover, classify and order every column reachable from ``sample``.

    Args:
        sample: One entity record as returned by the CRM. Never mutated.
        field_map: ``{raw_key: display_name}`` from the CRM field definitions.
        entity_type: Entity the record belongs to.
        hash_min_length: Minimum length of a hex custom field key.

    Returns:
        Unique, deterministically ordered columns. On any failure, the
        fallback column set for ``entity_type``.
    """
    try:
        return _discover(sample, field_map or {}, entity_type, hash_min_length)
    except ColumnExtractionError as exc:
        logger.warning(
            "columns.extraction_fallback",
            entity_type=entity_type.value,
            reason=str(exc),
        )
    except Exception as exc:
        logger.error(
            "columns.extraction_failed",
            entity_type=entity_type.value,
            error=str(exc),
            exc_info=True,
        )
    return fallback_columns(entity_type)
