# routers/tasks.py — Task cards and their sub-entities (labels, assignees, checklist, comments, attachments)
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database import get_db_session
from models import (
    BoardColumn, BoardTask, TaskLabel, TaskAssignee, TaskChecklistItem,
    TaskComment, TaskAttachment, TASK_CHILD_MODELS,
)
from schemas import (
    TaskCreate, TaskUpdate, TaskMove, TaskOut,
    LabelCreate, LabelOut, AssigneeCreate, AssigneeOut,
    ChecklistItemCreate, ChecklistItemUpdate, ChecklistItemOut,
    CommentCreate, CommentOut, AttachmentCreate, AttachmentOut,
)

logger = logging.getLogger("qms-boards.tasks")

router = APIRouter(prefix="/api/v1/tasks", tags=["Tasks"])

_TASK_DETAILS = (
    selectinload(BoardTask.labels),
    selectinload(BoardTask.assignees),
    selectinload(BoardTask.checklist),
    selectinload(BoardTask.comments),
    selectinload(BoardTask.attachments),
)


# ============================================================
# HELPERS
# ============================================================

def _label_out(label: TaskLabel) -> LabelOut:
    return LabelOut(id=label.id, name=label.name, color=label.color)


def _assignee_out(a: TaskAssignee) -> AssigneeOut:
    return AssigneeOut(id=a.id, user_id=a.user_id, user_initials=a.user_initials or "??")


def _checklist_out(item: TaskChecklistItem) -> ChecklistItemOut:
    return ChecklistItemOut(id=item.id, text=item.text, completed=bool(item.completed))


def _comment_out(c: TaskComment) -> CommentOut:
    return CommentOut(id=c.id, author_name=c.author_name, content=c.content, created_at=c.created_at)


def _attachment_out(a: TaskAttachment) -> AttachmentOut:
    return AttachmentOut(id=a.id, name=a.name, url=a.url, content_type=a.content_type, size=a.size or 0)


def _task_out(task: BoardTask, with_details: bool = True) -> TaskOut:
    """Convert a task row to TaskOut. Details must have been eager-loaded."""
    out = TaskOut(
        id=task.id,
        board_id=task.board_id,
        column_id=task.column_id,
        title=task.title,
        description=task.description or "",
        priority=task.priority,
        due_date=task.due_date,
        position=task.position or 0,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )
    if with_details:
        out.labels = [_label_out(l) for l in task.labels]
        out.assignees = [_assignee_out(a) for a in task.assignees]
        out.checklist = [_checklist_out(i) for i in task.checklist]
        out.comments = [_comment_out(c) for c in task.comments]
        out.attachments = [_attachment_out(a) for a in task.attachments]
    return out


async def _get_task(task_id: str, db: AsyncSession, with_details: bool = False) -> BoardTask:
    stmt = select(BoardTask).where(BoardTask.id == task_id)
    if with_details:
        stmt = stmt.options(*_TASK_DETAILS).execution_options(populate_existing=True)
    result = await db.execute(stmt)
    task = result.scalar_one_or_none()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


async def _get_column(column_id: str, db: AsyncSession) -> BoardColumn:
    result = await db.execute(select(BoardColumn).where(BoardColumn.id == column_id))
    col = result.scalar_one_or_none()
    if not col:
        raise HTTPException(status_code=404, detail="Column not found")
    return col


async def _tail_position(column_id: str, db: AsyncSession) -> int:
    stmt = select(func.max(BoardTask.position)).where(BoardTask.column_id == column_id)
    max_pos = (await db.execute(stmt)).scalar()
    return 0 if max_pos is None else max_pos + 1


# ============================================================
# TASK ENDPOINTS
# ============================================================

@router.get("", response_model=List[TaskOut])
async def list_tasks(
    column_id: Optional[List[str]] = Query(None),
    db: AsyncSession = Depends(get_db_session),
):
    """Tasks of a set of columns, joined with all of their sub-entities"""
    if not column_id:
        return []
    stmt = (
        select(BoardTask)
        .where(BoardTask.column_id.in_(column_id))
        .options(*_TASK_DETAILS)
        .order_by(BoardTask.position.asc(), BoardTask.created_at.asc())
    )
    result = await db.execute(stmt)
    return [_task_out(t) for t in result.scalars().all()]


@router.post("", response_model=TaskOut)
async def create_task(
    data: TaskCreate,
    db: AsyncSession = Depends(get_db_session),
):
    """Insert a task into a column; the identifier is assigned here"""
    col = await _get_column(data.column_id, db)

    position = data.position
    if position is None:
        position = await _tail_position(col.id, db)

    task = BoardTask(
        board_id=col.board_id,
        column_id=col.id,
        title=data.title,
        description=data.description or "",
        priority=data.priority,
        due_date=data.due_date,
        position=position,
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)

    logger.info(f"Task {task.id} created in column {col.id} at position {position}")
    # A new task never carries sub-entities
    return _task_out(task, with_details=False)


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(
    task_id: str,
    db: AsyncSession = Depends(get_db_session),
):
    task = await _get_task(task_id, db, with_details=True)
    return _task_out(task)


@router.put("/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    db: AsyncSession = Depends(get_db_session),
):
    """Overwrite the editable fields (title, description, priority, due date)"""
    task = await _get_task(task_id, db)

    task.title = data.title
    task.description = data.description or ""
    task.priority = data.priority
    task.due_date = data.due_date

    await db.commit()
    task = await _get_task(task_id, db, with_details=True)
    return _task_out(task)


@router.post("/{task_id}/move", response_model=TaskOut)
async def move_task(
    task_id: str,
    data: TaskMove,
    db: AsyncSession = Depends(get_db_session),
):
    """Reassign the task's column; without a position it lands at the tail"""
    task = await _get_task(task_id, db)
    target_col = await _get_column(data.column_id, db)
    if target_col.board_id != task.board_id:
        raise HTTPException(status_code=404, detail="Target column not found on this board")

    position = data.position
    if position is None:
        position = await _tail_position(target_col.id, db)

    old_column_id = task.column_id
    task.column_id = target_col.id
    task.position = position
    await db.commit()

    logger.info(f"Task {task_id} moved {old_column_id} → {target_col.id} (position {position})")
    task = await _get_task(task_id, db, with_details=True)
    return _task_out(task)


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    db: AsyncSession = Depends(get_db_session),
):
    """Hard-delete a task together with all of its sub-entities"""
    await _get_task(task_id, db)
    for model in TASK_CHILD_MODELS:
        await db.execute(delete(model).where(model.task_id == task_id))
    await db.execute(delete(BoardTask).where(BoardTask.id == task_id))
    await db.commit()
    return {"status": "deleted", "task_id": task_id}


# ============================================================
# CHECKLIST
# ============================================================

@router.post("/{task_id}/checklist", response_model=ChecklistItemOut)
async def add_checklist_item(
    task_id: str,
    data: ChecklistItemCreate,
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task(task_id, db)
    count_stmt = select(func.count(TaskChecklistItem.id)).where(TaskChecklistItem.task_id == task_id)
    count = (await db.execute(count_stmt)).scalar() or 0

    item = TaskChecklistItem(task_id=task_id, text=data.text, completed=False, position=count)
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return _checklist_out(item)


@router.patch("/{task_id}/checklist/{item_id}", response_model=ChecklistItemOut)
async def set_checklist_item(
    task_id: str,
    item_id: str,
    data: ChecklistItemUpdate,
    db: AsyncSession = Depends(get_db_session),
):
    """Only the completed flag of a checklist item is mutable"""
    stmt = select(TaskChecklistItem).where(
        TaskChecklistItem.id == item_id, TaskChecklistItem.task_id == task_id
    )
    item = (await db.execute(stmt)).scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=404, detail="Checklist item not found")

    item.completed = data.completed
    await db.commit()
    await db.refresh(item)
    return _checklist_out(item)


# ============================================================
# COMMENTS
# ============================================================

@router.post("/{task_id}/comments", response_model=CommentOut)
async def add_comment(
    task_id: str,
    data: CommentCreate,
    db: AsyncSession = Depends(get_db_session),
):
    """Append a comment; created_at is stamped here"""
    await _get_task(task_id, db)
    comment = TaskComment(task_id=task_id, author_name=data.author_name, content=data.content)
    db.add(comment)
    await db.commit()
    await db.refresh(comment)
    return _comment_out(comment)


# ============================================================
# LABELS & ASSIGNEES
# ============================================================

@router.post("/{task_id}/labels", response_model=LabelOut)
async def add_label(
    task_id: str,
    data: LabelCreate,
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task(task_id, db)
    label = TaskLabel(task_id=task_id, name=data.name, color=data.color)
    db.add(label)
    await db.commit()
    await db.refresh(label)
    return _label_out(label)


@router.delete("/{task_id}/labels/{name:path}")
async def remove_label(
    task_id: str,
    name: str,
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task(task_id, db)
    await db.execute(delete(TaskLabel).where(TaskLabel.task_id == task_id, TaskLabel.name == name))
    await db.commit()
    return {"status": "deleted"}


@router.post("/{task_id}/assignees", response_model=AssigneeOut)
async def add_assignee(
    task_id: str,
    data: AssigneeCreate,
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task(task_id, db)
    assignee = TaskAssignee(task_id=task_id, user_id=data.user_id, user_initials=data.user_initials)
    db.add(assignee)
    await db.commit()
    await db.refresh(assignee)
    return _assignee_out(assignee)


@router.delete("/{task_id}/assignees/{user_id:path}")
async def remove_assignee(
    task_id: str,
    user_id: str,
    db: AsyncSession = Depends(get_db_session),
):
    await _get_task(task_id, db)
    await db.execute(
        delete(TaskAssignee).where(TaskAssignee.task_id == task_id, TaskAssignee.user_id == user_id)
    )
    await db.commit()
    return {"status": "deleted"}


# ============================================================
# ATTACHMENTS
# ============================================================

@router.post("/{task_id}/attachments", response_model=AttachmentOut)
async def add_attachment(
    task_id: str,
    data: AttachmentCreate,
    db: AsyncSession = Depends(get_db_session),
):
    """Record an attachment whose blob is already in document storage"""
    await _get_task(task_id, db)
    att = TaskAttachment(
        task_id=task_id,
        name=data.name,
        url=data.url,
        content_type=data.content_type,
        size=data.size,
    )
    db.add(att)
    await db.commit()
    await db.refresh(att)
    return _attachment_out(att)
