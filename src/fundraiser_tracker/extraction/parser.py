from __future__ import annotations

import json
import math
import re
from typing import Any, List, Optional

from ..logging import get_logger
from ..models import ParsedOrder, coerce_price


LOG = get_logger("extraction-parser")

REQUIRED_FIELDS = ("customerName", "items", "totalPrice")
OPTIONAL_FIELDS = ("phoneNumber", "notes")


class ExtractionError(Exception):
    """The extraction service could not produce a usable answer."""


class ExtractionValidationError(ExtractionError):
    """The service answered, but not with an order-shaped JSON object."""


def scavenge_json_block(s: str) -> Optional[Any]:
    """Best-effort JSON recovery from model output wrapped in prose or fences."""
    if not s:
        return None

    candidates: List[str] = []

    fenced = re.search(r"```(?:json)?\s*(.*?)```", s, re.DOTALL)
    if fenced and fenced.group(1):
        candidates.append(fenced.group(1).strip())

    start_obj = s.find("{")
    end_obj = s.rfind("}")
    if start_obj != -1 and end_obj != -1 and end_obj > start_obj:
        candidates.append(s[start_obj : end_obj + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    return None


def decode_response_text(text: str) -> Any:
    """Parse the model's text answer as JSON, raising on garbage."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        LOG.debug("Strict JSON parse failed; scavenging (first 300 chars: %r)", text[:300])
    recovered = scavenge_json_block(text)
    if recovered is None:
        raise ExtractionError("Extraction response is not valid JSON")
    return recovered


def _price(value: Any) -> float:
    if isinstance(value, bool):
        raise ExtractionValidationError("totalPrice must be a number")
    if isinstance(value, (int, float)):
        if not math.isfinite(float(value)):
            raise ExtractionValidationError("totalPrice must be finite")
        return coerce_price(value)
    if isinstance(value, str):
        cleaned = value.strip().lstrip("$").replace(",", "")
        if not cleaned:
            return 0.0
        try:
            float(cleaned)
        except ValueError:
            raise ExtractionValidationError(f"totalPrice is not numeric: {value!r}")
        return coerce_price(cleaned)
    if value is None:
        return 0.0
    raise ExtractionValidationError("totalPrice must be a number")


def _string(payload: dict, key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Phone numbers occasionally come back as bare numbers.
        return str(value)
    if not isinstance(value, str):
        raise ExtractionValidationError(f"{key} must be a string")
    return value.strip()


def parse_extraction_payload(payload: Any) -> ParsedOrder:
    """Validate the model's JSON object and normalize it to a :class:`ParsedOrder`.

    - ``customerName``, ``items``, ``totalPrice`` must be present (null allowed).
    - ``phoneNumber`` and ``notes`` default to an empty string.
    - ``totalPrice`` accepts numbers and numeric strings (``"$15"``, ``"1,250.00"``).
    """
    if not isinstance(payload, dict):
        raise ExtractionValidationError("Extraction payload must be a JSON object")

    missing = [key for key in REQUIRED_FIELDS if key not in payload]
    if missing:
        raise ExtractionValidationError(f"Extraction payload missing required field(s): {', '.join(missing)}")

    parsed = ParsedOrder(
        customer_name=_string(payload, "customerName"),
        phone_number=_string(payload, "phoneNumber"),
        items=_string(payload, "items"),
        total_price=_price(payload.get("totalPrice")),
        notes=_string(payload, "notes"),
    )
    LOG.debug("Normalized extraction payload for customer %r", parsed.customer_name)
    return parsed
