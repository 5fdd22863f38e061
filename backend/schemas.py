# schemas.py — Wire models shared by the board API and the sync client
from datetime import date, datetime
from typing import Annotated, Optional, List

from pydantic import AfterValidator, BaseModel, Field

from models import TaskPriority


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


# Trimmed text that must still carry content after trimming
NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


# --- Board ---
class BoardCreate(BaseModel):
    type: str = Field(..., min_length=1, max_length=50)
    name: str = ""


class BoardOut(BaseModel):
    id: str
    type: str
    name: str = ""
    created_at: Optional[datetime] = None


# --- Column ---
class ColumnCreate(BaseModel):
    title: NonBlankStr = Field(..., min_length=1, max_length=100)
    position: Optional[int] = None


class ColumnOut(BaseModel):
    id: str
    board_id: str
    title: str
    position: int


# --- Task sub-entities ---
class LabelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: str = "blue"


class LabelOut(BaseModel):
    id: str
    name: str
    color: str


class AssigneeCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    user_initials: str = Field(default="??", max_length=4)


class AssigneeOut(BaseModel):
    id: str
    user_id: str
    user_initials: str = "??"


class ChecklistItemCreate(BaseModel):
    text: NonBlankStr = Field(..., min_length=1, max_length=500)


class ChecklistItemUpdate(BaseModel):
    completed: bool


class ChecklistItemOut(BaseModel):
    id: str
    text: str
    completed: bool = False


class CommentCreate(BaseModel):
    author_name: str = Field(..., min_length=1, max_length=100)
    content: NonBlankStr = Field(..., min_length=1, max_length=10000)


class CommentOut(BaseModel):
    id: str
    author_name: str = "Desconocido"
    content: str
    created_at: datetime


class AttachmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1)
    content_type: Optional[str] = None
    size: int = Field(default=0, ge=0)


class AttachmentOut(BaseModel):
    id: str
    name: str
    url: str
    content_type: Optional[str] = None
    size: int = 0


# --- Task ---
class TaskCreate(BaseModel):
    column_id: str
    title: NonBlankStr = Field(..., min_length=1, max_length=500)
    priority: TaskPriority = TaskPriority.MEDIA
    description: str = ""
    due_date: Optional[date] = None
    position: Optional[int] = None  # If None, appended to the tail of the column


class TaskUpdate(BaseModel):
    """Full editable field set; every update writes all of it."""
    title: NonBlankStr = Field(..., min_length=1, max_length=500)
    description: str = ""
    priority: TaskPriority
    due_date: Optional[date] = None


class TaskMove(BaseModel):
    column_id: str
    position: Optional[int] = None


class TaskOut(BaseModel):
    id: str
    board_id: str
    column_id: str
    title: str
    description: str = ""
    priority: TaskPriority
    due_date: Optional[date] = None
    position: int = 0
    labels: List[LabelOut] = Field(default_factory=list)
    assignees: List[AssigneeOut] = Field(default_factory=list)
    checklist: List[ChecklistItemOut] = Field(default_factory=list)
    comments: List[CommentOut] = Field(default_factory=list)
    attachments: List[AttachmentOut] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
