# models.py — Relational store for the quality-management Kanban boards
# - UUID string primary keys everywhere
# - Boards provisioned per type tag ("projects", ...)
# - Column position drives left-to-right order, task position top-to-bottom
# - Hard deletes: archiving a task removes it and all of its sub-entities

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, Date, Boolean, BigInteger, Integer,
    Enum as SQLEnum, ForeignKey, Text, Index,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


# ============================================================
# ENUMS
# ============================================================

class TaskPriority(str, PyEnum):
    BAJA = "Baja"
    MEDIA = "Media"
    ALTA = "Alta"
    CRITICA = "Crítica"


# ============================================================
# BOARDS
# ============================================================

class Board(Base):
    """Kanban board, one per workflow type"""
    __tablename__ = "boards"

    id = Column(String, primary_key=True, default=new_uuid)
    type = Column(String, nullable=False, index=True)  # e.g. "projects"
    name = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    columns = relationship("BoardColumn", back_populates="board", order_by="BoardColumn.position")

    __table_args__ = (
        Index("idx_board_type_created", "type", "created_at"),
    )


class BoardColumn(Base):
    """Stage of the workflow; holds an ordered list of tasks"""
    __tablename__ = "board_columns"

    id = Column(String, primary_key=True, default=new_uuid)
    board_id = Column(String, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    board = relationship("Board", back_populates="columns")
    tasks = relationship("BoardTask", back_populates="column", order_by="BoardTask.position")

    __table_args__ = (
        Index("idx_col_board_pos", "board_id", "position"),
    )


# ============================================================
# TASKS
# ============================================================

class BoardTask(Base):
    """Task card. The column reference is the only record of its stage."""
    __tablename__ = "board_tasks"

    id = Column(String, primary_key=True, default=new_uuid)
    board_id = Column(String, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    column_id = Column(String, ForeignKey("board_columns.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(SQLEnum(TaskPriority), nullable=False, default=TaskPriority.MEDIA)
    due_date = Column(Date, nullable=True)
    position = Column(Integer, nullable=False, default=0)  # Order within column

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    column = relationship("BoardColumn", back_populates="tasks")
    labels = relationship("TaskLabel", back_populates="task", order_by="TaskLabel.created_at")
    assignees = relationship("TaskAssignee", back_populates="task", order_by="TaskAssignee.created_at")
    checklist = relationship("TaskChecklistItem", back_populates="task", order_by="TaskChecklistItem.position")
    comments = relationship("TaskComment", back_populates="task", order_by="TaskComment.created_at")
    attachments = relationship("TaskAttachment", back_populates="task", order_by="TaskAttachment.created_at")

    __table_args__ = (
        Index("idx_task_col_pos", "column_id", "position"),
    )


class TaskLabel(Base):
    """Colour-tagged label attached to a task"""
    __tablename__ = "task_labels"

    id = Column(String, primary_key=True, default=new_uuid)
    task_id = Column(String, ForeignKey("board_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    color = Column(String, nullable=False, default="blue")
    created_at = Column(DateTime(timezone=True), default=utcnow)

    task = relationship("BoardTask", back_populates="labels")


class TaskAssignee(Base):
    __tablename__ = "task_assignees"

    id = Column(String, primary_key=True, default=new_uuid)
    task_id = Column(String, ForeignKey("board_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False)
    user_initials = Column(String, nullable=False, default="??")
    created_at = Column(DateTime(timezone=True), default=utcnow)

    task = relationship("BoardTask", back_populates="assignees")


class TaskChecklistItem(Base):
    """Checklist entry. Only the completed flag ever changes after insert."""
    __tablename__ = "task_checklists"

    id = Column(String, primary_key=True, default=new_uuid)
    task_id = Column(String, ForeignKey("board_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    task = relationship("BoardTask", back_populates="checklist")


class TaskComment(Base):
    """Append-only comment on a task card"""
    __tablename__ = "task_comments"

    id = Column(String, primary_key=True, default=new_uuid)
    task_id = Column(String, ForeignKey("board_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    author_name = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    task = relationship("BoardTask", back_populates="comments")

    __table_args__ = (
        Index("idx_comment_task_time", "task_id", "created_at"),
    )


class TaskAttachment(Base):
    """Reference to a blob uploaded to document storage"""
    __tablename__ = "task_attachments"

    id = Column(String, primary_key=True, default=new_uuid)
    task_id = Column(String, ForeignKey("board_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    content_type = Column(String, nullable=True)
    size = Column(BigInteger, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    task = relationship("BoardTask", back_populates="attachments")


# Child tables purged on a hard task delete, leaf-first
TASK_CHILD_MODELS = (TaskLabel, TaskAssignee, TaskChecklistItem, TaskComment, TaskAttachment)
