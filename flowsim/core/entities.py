"""
Simulation Entities

Defines the data the engine works with:
- FlowRule: one edge of a process definition, supplied by the rule store
- SimTask: one concrete unit of work inside a flow instance
- InstanceState: per-instance sequencing and deferral bookkeeping
- SimLogEntry / MetricsPoint: the outputs handed to reporting collaborators
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class FlowRule(BaseModel):
    """
    One transition of a process definition.

    Rules arrive from the rule store with camelCase keys
    (currentTask, nextTask, tatType, email); both those and the
    snake_case names are accepted.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    system: str = ""
    current_task: str = Field(default="", alias="currentTask")
    status: str = ""
    next_task: str = Field(default="", alias="nextTask")
    tat: float = 1.0
    tat_type: str = Field(default="hour", alias="tatType")
    assignee: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("assignee", "email", "assigneeId"),
    )
    form_id: Optional[str] = Field(default=None, alias="formId")
    merge_condition: Optional[str] = Field(default=None, alias="mergeCondition")

    @field_validator("current_task", "status", "next_task", mode="before")
    @classmethod
    def _blank_when_missing(cls, value):
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("tat", mode="before")
    @classmethod
    def _tat_default(cls, value):
        return 1.0 if value in (None, "") else value

    @field_validator("tat_type", mode="before")
    @classmethod
    def _tat_type_default(cls, value):
        return value or "hour"

    @property
    def is_start(self) -> bool:
        """The start rule is the one whose current task is empty."""
        return self.current_task == ""

    @property
    def is_edge(self) -> bool:
        """Rules without a next task do not lead anywhere."""
        return self.next_task != ""


class TaskStatus(Enum):
    """Lifecycle of a simulated task, in lifecycle order."""
    CREATED = "created"
    QUEUED = "queued"
    PENDING = "pending"
    ASSIGNED = "assigned"
    STARTED = "started"
    COMPLETED = "completed"


@dataclass
class SimTask:
    """
    A concrete unit of work belonging to one flow instance.

    `sequence` is the ordinal position inside the instance: task n+1
    may not progress until task n of the same instance is completed.
    """
    id: str
    instance_id: str
    task_name: str
    sequence: int
    planned_minutes: float
    created_at: datetime
    assignee: Optional[str] = None
    status: TaskStatus = TaskStatus.CREATED

    # Pre-assignment jitter budget and accumulated work
    wait_minutes: float = 0.0
    process_minutes: float = 0.0

    # Lifecycle timestamps
    queued_at: Optional[datetime] = None
    pending_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    deferred_due_to_busy: bool = False

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def move_to(self, status: TaskStatus, now: datetime) -> None:
        """Change status and stamp the matching lifecycle timestamp."""
        self.status = status
        stamp = {
            TaskStatus.QUEUED: "queued_at",
            TaskStatus.PENDING: "pending_at",
            TaskStatus.ASSIGNED: "assigned_at",
            TaskStatus.STARTED: "started_at",
            TaskStatus.COMPLETED: "completed_at",
        }.get(status)
        if stamp:
            setattr(self, stamp, now)

    def minutes_since(self, moment: Optional[datetime], now: datetime) -> float:
        if moment is None:
            return 0.0
        return (now - moment).total_seconds() / 60


@dataclass
class DeferredTask:
    """A successor task waiting for the working-hours window to open."""
    task_name: str
    base_minutes: float
    sequence: int
    assignee: Optional[str] = None


@dataclass
class LoopGuard:
    """
    Hop budget and per-task visit counts for one flow instance.

    Caps runaway cycles caused by rule-authoring mistakes.
    """
    max_hops: int = 200
    max_visits: int = 3
    hops: int = 0
    visit_counts: dict = field(default_factory=dict)
    tripped: Optional[str] = None

    def register(self, task_name: str) -> bool:
        """Record one hop out of `task_name`; False once a limit is exceeded."""
        self.hops += 1
        self.visit_counts[task_name] = self.visit_counts.get(task_name, 0) + 1

        if self.hops > self.max_hops:
            self.tripped = f"hop budget of {self.max_hops} exhausted at '{task_name}'"
        elif self.visit_counts[task_name] > self.max_visits:
            self.tripped = (
                f"task '{task_name}' visited {self.visit_counts[task_name]} times"
            )
        return self.tripped is None


@dataclass
class InstanceState:
    """Mutable record for one flow instance."""
    instance_id: str
    current_task: Optional[str] = None  # None once the flow has ended
    next_seq: int = 1
    deferred_next: list[DeferredTask] = field(default_factory=list)
    guard: LoopGuard = field(default_factory=LoopGuard)

    @property
    def has_ended(self) -> bool:
        return self.current_task is None

    def take_sequence(self) -> int:
        seq = self.next_seq
        self.next_seq += 1
        return seq


class EventKind(Enum):
    """Kinds of entries written to the simulation event log."""
    CREATED = "created"
    CREATED_DEFERRED = "created (deferred)"
    CREATED_NEXT = "created (next)"
    CREATION_DEFERRED = "creation deferred (off-hours)"
    ARRIVAL_DEFERRED = "arrival deferred"
    QUEUED = "queued"
    QUEUE_DEFERRED_BUSY = "queue-deferred (busy)"
    PENDING = "pending"
    REQUEUED_BUSY = "re-queued (busy after pending)"
    ASSIGNED = "assigned"
    STARTED = "started"
    COMPLETED = "completed"
    NEXT = "next"
    END_OF_FLOW = "end-of-flow"
    ANOMALY = "anomaly"


@dataclass
class SimLogEntry:
    """One lifecycle event in the live event log."""
    timestamp: datetime
    instance_id: str
    task_name: str
    event_kind: EventKind
    detail: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "instance_id": self.instance_id,
            "task_name": self.task_name,
            "event_kind": self.event_kind.value,
            "detail": self.detail,
        }


@dataclass
class MetricsPoint:
    """Per-tick metrics sample for time-series charts."""
    timestamp: datetime
    created: int = 0
    completed: int = 0
    queue_length: int = 0
    in_progress: int = 0
    utilization_pct: float = 0.0
