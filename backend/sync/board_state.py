# sync/board_state.py — In-memory Kanban board: columns keyed by id, each owning an ordered task list
"""
Board → Column → Task arena used by BoardSync.

Columns are addressed by id; each task sits in exactly one column's list and
carries `column_id` as a back-reference to its owner. Checklist progress is
always computed from the checklist items, never stored.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from models import TaskPriority
from schemas import (
    AssigneeOut, AttachmentOut, BoardOut, ChecklistItemOut, ColumnOut,
    CommentOut, LabelOut, TaskOut,
)

# Fixed label palette offered by the board UI
LABEL_PALETTE = {
    "CALIDAD": "red",
    "PLANTA": "blue",
    "URGENTE": "orange",
}


@dataclass
class Label:
    id: str
    name: str
    color: str

    @classmethod
    def from_record(cls, rec: LabelOut) -> "Label":
        return cls(id=rec.id, name=rec.name, color=rec.color)


@dataclass
class Assignee:
    id: str  # user id
    initials: str = "??"

    @classmethod
    def from_record(cls, rec: AssigneeOut) -> "Assignee":
        return cls(id=rec.user_id, initials=rec.user_initials or "??")


@dataclass
class ChecklistItem:
    id: str
    text: str
    completed: bool = False

    @classmethod
    def from_record(cls, rec: ChecklistItemOut) -> "ChecklistItem":
        return cls(id=rec.id, text=rec.text, completed=rec.completed)


@dataclass(frozen=True)
class Comment:
    """Immutable once posted."""
    id: str
    author: str
    text: str
    created_at: datetime

    @classmethod
    def from_record(cls, rec: CommentOut) -> "Comment":
        return cls(id=rec.id, author=rec.author_name or "Desconocido", text=rec.content, created_at=rec.created_at)


@dataclass
class Attachment:
    id: str
    name: str
    url: str
    content_type: Optional[str] = None
    size: int = 0

    @classmethod
    def from_record(cls, rec: AttachmentOut) -> "Attachment":
        return cls(id=rec.id, name=rec.name, url=rec.url, content_type=rec.content_type, size=rec.size)


@dataclass
class Task:
    id: str
    column_id: str
    title: str
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIA
    due_date: Optional[date] = None
    position: int = 0
    labels: List[Label] = field(default_factory=list)
    assignees: List[Assignee] = field(default_factory=list)
    checklist: List[ChecklistItem] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, rec: TaskOut) -> "Task":
        return cls(
            id=rec.id,
            column_id=rec.column_id,
            title=rec.title,
            description=rec.description or "",
            priority=rec.priority,
            due_date=rec.due_date,
            position=rec.position,
            labels=[Label.from_record(l) for l in rec.labels],
            assignees=[Assignee.from_record(a) for a in rec.assignees],
            checklist=[ChecklistItem.from_record(i) for i in rec.checklist],
            comments=[Comment.from_record(c) for c in rec.comments],
            attachments=[Attachment.from_record(a) for a in rec.attachments],
            created_at=rec.created_at,
        )

    @property
    def checklist_progress(self) -> Tuple[int, int]:
        """(completed, total), recomputed on every read"""
        done = sum(1 for item in self.checklist if item.completed)
        return done, len(self.checklist)

    @property
    def progress_percent(self) -> int:
        done, total = self.checklist_progress
        if total == 0:
            return 0
        return round(done / total * 100)

    def find_checklist_item(self, item_id: str) -> Optional[ChecklistItem]:
        return next((item for item in self.checklist if item.id == item_id), None)

    def find_label(self, name: str) -> Optional[Label]:
        return next((l for l in self.labels if l.name == name), None)

    def find_assignee(self, user_id: str) -> Optional[Assignee]:
        return next((a for a in self.assignees if a.id == user_id), None)


@dataclass
class Column:
    id: str
    title: str
    position: int
    tasks: List[Task] = field(default_factory=list)
    reserved_position: int = field(default=-1, repr=False, compare=False)

    def index_of(self, task_id: str) -> Optional[int]:
        for i, task in enumerate(self.tasks):
            if task.id == task_id:
                return i
        return None

    def next_position(self) -> int:
        """Position value that sorts after every task currently in the column"""
        if not self.tasks:
            return 0
        return max(t.position for t in self.tasks) + 1

    def reserve_position(self) -> int:
        """Tail position for an insert that is still in flight.

        Never hands out the same value twice, so overlapping inserts into one
        column get distinct positions.
        """
        position = max(self.next_position(), self.reserved_position + 1)
        self.reserved_position = position
        return position

    def insert_in_order(self, task: Task):
        """Place a task after every task whose position is not greater"""
        index = len(self.tasks)
        while index > 0 and self.tasks[index - 1].position > task.position:
            index -= 1
        self.tasks.insert(index, task)


@dataclass
class Board:
    id: str
    type: str
    columns: Dict[str, Column] = field(default_factory=dict)

    @classmethod
    def from_records(cls, board: BoardOut, columns: Iterable[ColumnOut], tasks: Iterable[TaskOut]) -> "Board":
        """Group tasks under their columns and order both by position.

        Tasks pointing at a column outside this board are dropped.
        """
        ordered = sorted(columns, key=lambda c: c.position)
        cols = {c.id: Column(id=c.id, title=c.title, position=c.position) for c in ordered}
        for rec in tasks:
            col = cols.get(rec.column_id)
            if col is not None:
                col.tasks.append(Task.from_record(rec))
        for col in cols.values():
            # Stable: ties keep the order the store returned them in
            col.tasks.sort(key=lambda t: t.position)
        return cls(id=board.id, type=board.type, columns=cols)

    def ordered_columns(self) -> List[Column]:
        return sorted(self.columns.values(), key=lambda c: c.position)

    def first_column(self) -> Optional[Column]:
        ordered = self.ordered_columns()
        return ordered[0] if ordered else None

    def locate(self, task_id: str) -> Optional[Tuple[Column, int]]:
        """Column currently holding the task, and the task's index in it"""
        for col in self.columns.values():
            idx = col.index_of(task_id)
            if idx is not None:
                return col, idx
        return None

    def find_task(self, task_id: str) -> Optional[Task]:
        located = self.locate(task_id)
        if located is None:
            return None
        col, idx = located
        return col.tasks[idx]

    def all_tasks(self) -> List[Task]:
        return [t for col in self.ordered_columns() for t in col.tasks]

    def snapshot(self) -> List[Tuple[str, List[str]]]:
        """(column id, [task ids]) in render order; used to compare loads"""
        return [(col.id, [t.id for t in col.tasks]) for col in self.ordered_columns()]
