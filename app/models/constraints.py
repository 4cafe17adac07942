from dataclasses import dataclass
from enum import Enum


class RelationType(str, Enum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"


class PrecedenceSemantics(str, Enum):
    """How a BEFORE relation is encoded.

    INTUITIVE: the task finishes before the target starts (target.start > task.end).
    LITERAL: the task ends after the target starts (task.end > target.start).
    AFTER is encoded the same way under both: task.start > target.end.
    """

    INTUITIVE = "intuitive"
    LITERAL = "literal"


@dataclass(frozen=True)
class RelationConstraint:
    type: RelationType
    target_task_id: str
