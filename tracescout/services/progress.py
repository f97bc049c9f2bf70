"""Progress notifications emitted by a pipeline run."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PipelineStage(str, Enum):
    """Stage keys, in the order a successful run emits them.

    ``fetch_source_status`` follows every ``fetching`` event. ``planning`` and
    ``planned`` only appear when some candidate passed the gate. ``error`` is
    the terminal event of a failed run. ``aborted`` is never emitted; it
    marks the final stage of a cancelled run's result.
    """

    FETCHING = "fetching"
    FETCH_SOURCE_STATUS = "fetch_source_status"
    FETCHED = "fetched"
    EVALUATING = "evaluating"
    EVALUATED = "evaluated"
    REFINING = "refining"
    REFINED = "refined"
    RANKING = "ranking"
    PLANNING = "planning"
    PLANNED = "planned"
    DONE = "done"
    ERROR = "error"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStage.DONE, PipelineStage.ERROR, PipelineStage.ABORTED)


@dataclass(frozen=True)
class ProgressEvent:
    """One notification: stage key, human-readable message, optional payload."""

    stage: PipelineStage
    message: str
    payload: dict[str, Any] = field(default_factory=dict)


ProgressObserver = Callable[[ProgressEvent], None]
