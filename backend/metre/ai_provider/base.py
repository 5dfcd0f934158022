"""AIProvider abstract interface and the task records it produces.

A provider turns an audio file into a transcript and a transcript into a
list of construction tasks. The task records are normalised here so the
sentinel values the prompt asks for are guaranteed regardless of what the
model actually returned.

Usage:
    from metre.ai_provider import OpenAIProvider

    provider = OpenAIProvider(api_key="sk-...")
    transcript = await provider.transcribe(path)
    tasks = await provider.extract_tasks(transcript, catalog)
"""
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import AbstractSet, Any, Dict, List, Optional, Union

from .catalog import Catalog

# Sentinels shared with the analysis prompt.
MISSING_ID = "Missing"
MISSING_QUANTITY = "QUANTITÉ MANQUANTE"
MISSING_ROOM = "LIEU MANQUANT"

DEFAULT_QUANTITY_QUESTION = (
    "Quelles sont les dimensions nécessaires au calcul de la quantité ?"
)


@dataclass(frozen=True)
class NumericQuantity:
    """A quantity the analysis could compute."""
    value: float

    def to_json(self) -> Union[int, float]:
        if self.value.is_integer():
            return int(self.value)
        return self.value


@dataclass(frozen=True)
class UnresolvedQuantity:
    """A quantity that could not be computed.

    Attributes:
        reason: The raw value the model returned in place of a number.
    """
    reason: str = MISSING_QUANTITY

    def to_json(self) -> str:
        return MISSING_QUANTITY


Quantity = Union[NumericQuantity, UnresolvedQuantity]


def parse_quantity(raw: Any) -> Quantity:
    """Turn a model-supplied quantity into a Quantity variant.

    Numbers and numeric strings (French decimal comma accepted) become
    NumericQuantity; anything else is unresolved.
    """
    if isinstance(raw, bool) or raw is None:
        return UnresolvedQuantity(str(raw) if raw is not None else MISSING_QUANTITY)
    if isinstance(raw, (int, float)):
        value = float(raw)
        if math.isfinite(value):
            return NumericQuantity(value)
        return UnresolvedQuantity(str(raw))
    text = str(raw).strip()
    cleaned = re.sub(r"[\s\u00a0\u202f]", "", text).replace(",", ".")
    try:
        value = float(cleaned)
    except ValueError:
        return UnresolvedQuantity(text or MISSING_QUANTITY)
    if not math.isfinite(value):
        return UnresolvedQuantity(text)
    return NumericQuantity(value)


def _clean_optional(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class TaskRecord:
    """One construction task extracted from a site-visit transcript.

    Attributes:
        room_name: Room the task applies to, or LIEU MANQUANT.
        task_name: Task name as spoken during the visit.
        id: Matching catalog identifier, or "Missing".
        quantity: Computed quantity or an unresolved marker.
        unit: Unit label (m², ml, unités...).
        description: Technical detail, only when one was mentioned.
        hypotheses: Assumption made or question raised, only when needed.
    """
    room_name: str
    task_name: str
    quantity: Quantity
    unit: str = ""
    id: str = MISSING_ID
    description: Optional[str] = None
    hypotheses: Optional[str] = None

    @property
    def is_quantity_missing(self) -> bool:
        return isinstance(self.quantity, UnresolvedQuantity)

    @classmethod
    def from_raw(
        cls,
        item: Dict[str, Any],
        known_ids: Optional[AbstractSet[str]] = None,
    ) -> "TaskRecord":
        """Build a record from one element of the model's ``tasks`` array.

        Args:
            item: Decoded JSON object for one task.
            known_ids: Catalog identifiers; when given, ids outside this
                set are treated as unmatched.
        """
        room_name = _clean_optional(item.get("room_name")) or MISSING_ROOM
        task_name = _clean_optional(item.get("task_name")) or ""

        task_id = _clean_optional(item.get("id"))
        if task_id is None or (known_ids and task_id not in known_ids):
            task_id = MISSING_ID

        quantity = parse_quantity(item.get("quantity"))
        hypotheses = _clean_optional(item.get("hypotheses"))
        if isinstance(quantity, UnresolvedQuantity) and hypotheses is None:
            hypotheses = DEFAULT_QUANTITY_QUESTION

        return cls(
            room_name=room_name,
            task_name=task_name,
            id=task_id,
            description=_clean_optional(item.get("description")),
            quantity=quantity,
            unit=_clean_optional(item.get("unit")) or "",
            hypotheses=hypotheses,
        )

    def to_dict(self) -> dict:
        """Convert to the response JSON shape, omitting empty optional keys."""
        data: Dict[str, Any] = {
            "room_name": self.room_name,
            "task_name": self.task_name,
            "id": self.id,
        }
        if self.description:
            data["description"] = self.description
        data["quantity"] = self.quantity.to_json()
        data["unit"] = self.unit
        if self.hypotheses:
            data["hypotheses"] = self.hypotheses
        return data


class AIProvider(ABC):
    """Abstract base class for the speech-to-text and analysis backend.

    Methods:
        transcribe: Turn a stored audio file into plain text.
        extract_tasks: Turn a transcript into structured task records.
    """

    @abstractmethod
    async def transcribe(self, audio_path: Path) -> str:
        """Transcribe an audio file.

        Args:
            audio_path: Location of the stored upload.

        Returns:
            str: The full transcript as plain text.

        Raises:
            Exception: If the speech-to-text request fails.
        """

    @abstractmethod
    async def extract_tasks(self, transcript: str, catalog: Catalog) -> List[TaskRecord]:
        """Extract construction tasks from a transcript.

        Args:
            transcript: Plain-text transcript of the site visit.
            catalog: Caller-supplied catalog of task identifiers.

        Returns:
            List[TaskRecord]: Normalised task records.

        Raises:
            MalformedResponseError: If the completion is not valid JSON or
                does not match the tasks schema.
            Exception: If the completion request fails.
        """
