"""Caller-supplied task catalog.

The catalog arrives as a JSON string in the ``tasks`` form field. Any JSON
shape is accepted and forwarded to the model as data; when the shape
exposes identifiers they are collected so unmatched ids can be detected.

Recognised shapes for id collection:
    [{"id": "PEINT-STD", "name": "Peinture standard"}, ...]
    {"PEINT-STD": "Peinture standard", ...}
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Optional

from metre.errors import InvalidRequestError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 200_000

_ID_KEYS = ("id", "ID", "Id")


def _collect_ids(data: Any) -> FrozenSet[str]:
    ids = set()
    if isinstance(data, list):
        for entry in data:
            if not isinstance(entry, dict):
                continue
            for key in _ID_KEYS:
                value = entry.get(key)
                if isinstance(value, (str, int)) and not isinstance(value, bool):
                    ids.add(str(value))
                    break
    elif isinstance(data, dict):
        ids.update(str(key) for key in data.keys())
    return frozenset(ids)


@dataclass(frozen=True)
class Catalog:
    """Parsed catalog of known tasks.

    Attributes:
        data: Decoded JSON value, or None when no catalog was sent.
        ids: Identifiers found in ``data`` (empty when none are exposed).
    """
    data: Any = None
    ids: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_value(cls, data: Any) -> "Catalog":
        return cls(data=data, ids=_collect_ids(data))

    def to_prompt_json(self) -> str:
        """Serialise for inclusion in the user message."""
        return json.dumps(self.data, ensure_ascii=False)

    def __len__(self) -> int:
        if isinstance(self.data, (list, dict)):
            return len(self.data)
        return 0 if self.data is None else 1


def parse_catalog(raw: Optional[str], max_chars: int = DEFAULT_MAX_CHARS) -> Catalog:
    """Parse the ``tasks`` form field.

    Args:
        raw: JSON text sent by the client, or None.
        max_chars: Upper bound on the raw text length.

    Returns:
        Catalog: The decoded catalog (empty when ``raw`` is blank).

    Raises:
        InvalidRequestError: If the text is too long or is not valid JSON.
    """
    if raw is None or not raw.strip():
        return Catalog()

    if len(raw) > max_chars:
        raise InvalidRequestError(
            f"Task catalog is too large ({len(raw)} characters, limit {max_chars})"
        )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Rejected task catalog that is not valid JSON: %s", e)
        raise InvalidRequestError(f"Task catalog is not valid JSON: {e}")

    catalog = Catalog.from_value(data)
    logger.debug("Catalog parsed: %d entries, %d ids", len(catalog), len(catalog.ids))
    return catalog
