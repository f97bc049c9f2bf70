"""Evaluator capability and untrusted-payload repair.

An Evaluator (normally an LLM behind ``LLMClient``) takes a batch of
structured items and returns an ``UnvalidatedPayload``: whatever came back
over the wire, tagged with the task it answers. Nothing in it is trusted.
``unwrap_items`` is the single repair step that turns it into a list of raw
per-item records; each record must then pass a strict schema in
``tracescout.scoring.schemas`` before it is used.

Shapes seen in practice and handled by the repair step:
- JSON text wrapped in markdown fences or surrounded by prose
- ``{"items": [...]}`` envelopes (JSON mode forces an object at top level)
- the items array double-encoded as a JSON string
- individual items double-encoded as JSON strings
"""

import enum
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# Envelope keys checked, in order, when the payload is an object
ENVELOPE_KEYS = ("items", "results", "rankings", "candidates", "data")

# Nesting depth of string-encoded JSON that will be unpacked
MAX_DECODE_DEPTH = 3

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class EvaluationTask(str, enum.Enum):
    """What an evaluator call is asked to do."""

    JUDGE = "judge"
    REFINE = "refine"
    RANK = "rank"
    PLAN = "plan"


class PayloadError(Exception):
    """Raised when an evaluator payload cannot be repaired into an item list."""


class EvaluatorError(Exception):
    """Raised by evaluator implementations when the call itself fails."""


@dataclass(frozen=True)
class UnvalidatedPayload:
    """Raw evaluator output, tagged with the task it answers."""

    task: EvaluationTask
    raw: Any


class Evaluator(Protocol):
    """Structured-item evaluation capability."""

    async def evaluate(
        self,
        task: EvaluationTask,
        items: list[dict[str, Any]],
        context: str | None = None,
    ) -> UnvalidatedPayload:
        ...


def _parse_json_text(text: str) -> Any:
    """Parse JSON out of model text, tolerating fences and surrounding prose."""
    stripped = _FENCE_RE.sub("", text.strip()).strip()
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost array or object in the text
    for open_char, close_char in (("[", "]"), ("{", "}")):
        start = stripped.find(open_char)
        end = stripped.rfind(close_char)
        if start != -1 and end > start:
            try:
                return json.loads(stripped[start:end + 1])
            except json.JSONDecodeError:
                continue
    raise PayloadError(f"payload is not JSON: {stripped[:80]!r}")


def _decode(value: Any, depth: int = 0) -> Any:
    """Unpack string-encoded JSON, up to MAX_DECODE_DEPTH levels."""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str) and depth < MAX_DECODE_DEPTH:
        return _decode(_parse_json_text(value), depth + 1)
    return value


def _decode_element(value: Any) -> Any:
    """Decode one list element; undecodable strings are left for validation to reject."""
    if isinstance(value, (str, bytes)):
        try:
            return _decode(value)
        except PayloadError:
            return value
    return value


def unwrap_items(payload: UnvalidatedPayload) -> list[Any]:
    """
    Repair an evaluator payload into a list of raw item records.

    Args:
        payload: Untrusted evaluator output.

    Returns:
        List of per-item records (usually dicts, not yet validated).

    Raises:
        PayloadError: If no item list can be recovered.
    """
    data = _decode(payload.raw)

    if isinstance(data, dict):
        for key in ENVELOPE_KEYS:
            if key in data:
                data = _decode(data[key])
                break
        else:
            lists = [v for v in data.values() if isinstance(v, list)]
            if len(lists) != 1:
                raise PayloadError(
                    f"{payload.task.value} payload object has no item list "
                    f"(keys: {sorted(data)[:5]})"
                )
            data = lists[0]

    if not isinstance(data, list):
        raise PayloadError(
            f"{payload.task.value} payload is {type(data).__name__}, expected a list"
        )

    return [_decode_element(element) for element in data]
