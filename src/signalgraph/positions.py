"""Position payload parsing.

A position's ``sections`` column has carried two shapes over time:

- legacy: a list of ``{"title", "content", "signal_refs"}`` sections
- current: an object with ``key_numbers``, ``memo`` and ``signal_evidence``

Either may arrive as a JSON string.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from .models import LegacySection, PositionSections

logger = logging.getLogger(__name__)


def parse_sections(
    raw: Any,
) -> tuple[Optional[PositionSections], Optional[list[LegacySection]]]:
    """Return ``(parsed, legacy)``; at most one is set, both None if unusable."""
    if not raw:
        return None, None

    obj = raw
    if isinstance(raw, str):
        try:
            obj = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Position sections are not valid JSON")
            return None, None

    try:
        if isinstance(obj, list):
            return None, [LegacySection.model_validate(s) for s in obj]
        if isinstance(obj, dict):
            return PositionSections.model_validate(obj), None
    except ValidationError as e:
        logger.debug("Position sections failed validation: %s", e)
    return None, None
