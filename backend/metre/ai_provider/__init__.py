"""AI Provider module for speech-to-text and site-visit analysis.

Usage:
    from metre.ai_provider import OpenAIProvider, parse_catalog

    provider = OpenAIProvider(api_key="sk-...")
    catalog = parse_catalog('[{"id": "PEINT-STD", "name": "Peinture standard"}]')

    transcript = await provider.transcribe(path)
    tasks = await provider.extract_tasks(transcript, catalog)
"""
from .base import (
    MISSING_ID,
    MISSING_QUANTITY,
    MISSING_ROOM,
    AIProvider,
    NumericQuantity,
    Quantity,
    TaskRecord,
    UnresolvedQuantity,
    parse_quantity,
)
from .catalog import Catalog, parse_catalog
from .openai_provider import OpenAIProvider, parse_tasks_response
from .prompts import ANALYSIS_SYSTEM_PROMPT, TASKS_SCHEMA, build_user_message

__all__ = [
    "AIProvider",
    "OpenAIProvider",
    "TaskRecord",
    "Quantity",
    "NumericQuantity",
    "UnresolvedQuantity",
    "parse_quantity",
    "parse_tasks_response",
    "Catalog",
    "parse_catalog",
    "ANALYSIS_SYSTEM_PROMPT",
    "TASKS_SCHEMA",
    "build_user_message",
    # Sentinels
    "MISSING_ID",
    "MISSING_QUANTITY",
    "MISSING_ROOM",
]
