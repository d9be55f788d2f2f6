"""Explicit parse results for persisted collection entries.

Each entry of a stored list is parsed on its own; a bad entry becomes a
``Malformed`` value instead of failing the whole collection.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Valid(Generic[M]):
    """An entry that parsed into its model."""

    value: M


@dataclass(frozen=True)
class Malformed:
    """An entry that did not parse.

    Attributes:
        raw: The entry as it was stored
        reason: Short description of what was wrong with it
    """

    raw: Any
    reason: str


ParsedRecord = Valid[M] | Malformed


def parse_records(model: type[M], raw_entries: Iterable[Any]) -> list[ParsedRecord[M]]:
    """Parse every entry of a stored list into Valid or Malformed.

    Args:
        model: Pydantic model to validate each entry against
        raw_entries: Decoded JSON entries

    Returns:
        list: One parse result per entry, in stored order
    """
    results: list[ParsedRecord[M]] = []
    for entry in raw_entries:
        if not isinstance(entry, dict):
            results.append(Malformed(raw=entry, reason="entry is not an object"))
            continue
        try:
            results.append(Valid(model.model_validate(entry)))
        except PydanticValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            results.append(Malformed(raw=entry, reason=f"invalid fields: {fields}"))
    return results


def valid_values(results: Iterable[ParsedRecord[M]]) -> list[M]:
    """Keep only the successfully parsed values."""
    return [r.value for r in results if isinstance(r, Valid)]
