# sync/board_sync.py — Optimistic Kanban board state reconciled against the persistence service
"""
BoardSync owns the in-memory board and is the only thing that mutates it.

Two kinds of operations:

  optimistic          move, update, archive, toggle checklist item
                      local state changes first, then the remote write;
                      a failed write applies the inverse change and notifies.

  write-then-reflect  create, duplicate, add checklist item, comment,
                      labels, assignees, attachments
                      the remote insert runs first (it assigns ids and
                      timestamps); local state only changes on success.

All local mutations happen synchronously between awaits on one event loop,
so no lock is needed. Remote writes may overlap; each is keyed by task and
column id and the store applies last-write-wins. A revert is only applied
while the entity is still in the state the failing operation produced.

Remote failures never escape a mutation method: they are logged, turned into
one notification and reported through the return value. load() is the
exception: it notifies and raises NotFound / LoadError.
"""
import logging
from dataclasses import replace
from datetime import date
from typing import List, Optional, Sequence, Union

from models import TaskPriority
from sync.board_state import (
    LABEL_PALETTE, Assignee, Attachment, Board, ChecklistItem, Column, Comment,
    Label, Task,
)
from sync.errors import BoardSyncError, LoadError, NotFound, PersistenceError, ValidationError
from sync.notifications import LoggingNotificationSink, NotificationSink, Severity
from sync.persistence import PersistenceService

logger = logging.getLogger("qms-boards.sync")

DEFAULT_BOARD_TYPE = "projects"
DEFAULT_COLUMN_TITLES = ("Identificadas", "Análisis", "Plan de Acción", "Verificación")
COPY_SUFFIX = " (Copia)"
UNKNOWN_AUTHOR = "Desconocido"


def _require_text(value: Optional[str], what: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{what} must not be blank")
    return text


class BoardSync:
    def __init__(
        self,
        persistence: PersistenceService,
        notifications: Optional[NotificationSink] = None,
        board_type: str = DEFAULT_BOARD_TYPE,
        default_columns: Sequence[str] = DEFAULT_COLUMN_TITLES,
        user_name: Optional[str] = None,
    ):
        self.persistence = persistence
        self.notifications = notifications or LoggingNotificationSink()
        self.board_type = board_type
        self.default_columns = list(default_columns)
        self.user_name = user_name
        self.board: Optional[Board] = None
        self.selected_task_id: Optional[str] = None

    # ============================================================
    # LOAD
    # ============================================================

    async def load(self) -> Board:
        """Fetch the whole board; safe to repeat (used as a resync)."""
        try:
            board_rec = await self.persistence.get_board_by_type(self.board_type)
            columns = await self.persistence.get_columns(board_rec.id)
            missing = self._missing_default_columns(columns)
            if missing:
                logger.info(f"Board {board_rec.id} is missing default columns {missing}, creating them")
                columns = list(columns) + await self.persistence.create_default_columns(
                    board_rec.id, missing, start=len(columns),
                )
            tasks = await self.persistence.get_tasks_with_details([c.id for c in columns])
        except NotFound as e:
            logger.warning(f"Board of type {self.board_type!r} not found: {e}")
            self._notify(
                Severity.WARNING, "Tablero no encontrado",
                f"No se encontró un tablero de tipo {self.board_type}",
            )
            raise
        except PersistenceError as e:
            logger.error(f"Loading board {self.board_type!r} failed: {e}")
            self._notify(Severity.ERROR, "Error de Datos", str(e))
            if isinstance(e, LoadError):
                raise
            raise LoadError(str(e), status_code=e.status_code) from e

        self.board = Board.from_records(board_rec, columns, tasks)
        if self.selected_task_id and self.board.find_task(self.selected_task_id) is None:
            self.selected_task_id = None
        logger.debug(f"Loaded board {self.board.id}: {self.board.snapshot()}")
        return self.board

    async def refresh(self) -> Board:
        return await self.load()

    def _missing_default_columns(self, columns) -> List[str]:
        """Default titles still to create.

        An empty board gets the whole set. A board whose columns are a strict
        prefix of the defaults (an interrupted bootstrap) gets the rest.
        Any other column set is left alone.
        """
        titles = [c.title for c in sorted(columns, key=lambda c: c.position)]
        if titles != self.default_columns[:len(titles)]:
            return []
        return self.default_columns[len(titles):]

    # ============================================================
    # SELECTION
    # ============================================================

    def select_task(self, task_id: Optional[str]) -> Optional[Task]:
        self.selected_task_id = task_id
        return self.selected_task

    @property
    def selected_task(self) -> Optional[Task]:
        if self.board is None or self.selected_task_id is None:
            return None
        return self.board.find_task(self.selected_task_id)

    @property
    def columns(self) -> List[Column]:
        return self.board.ordered_columns() if self.board else []

    # ============================================================
    # TASKS
    # ============================================================

    async def create_task(
        self,
        title: str,
        priority: Union[TaskPriority, str] = TaskPriority.MEDIA,
        description: str = "",
        due_date: Optional[date] = None,
        column_id: Optional[str] = None,
    ) -> Optional[Task]:
        """Insert a task at the tail of a column (the first column by default)."""
        board = self._require_board()
        try:
            title = _require_text(title, "Task title")
        except ValidationError as e:
            logger.debug(f"create_task ignored: {e}")
            return None

        column = board.columns.get(column_id) if column_id else board.first_column()
        if column is None:
            self._not_found("Columna", column_id or "(primera)")
            return None

        try:
            record = await self.persistence.create_task(
                column.id, title, TaskPriority(priority),
                description=description or "", due_date=due_date,
                position=column.reserve_position(),
            )
        except PersistenceError as e:
            self._write_failed("Error", e)
            return None

        task = Task.from_record(record)
        self._append(task)
        self._notify(Severity.SUCCESS, "Tarea Creada", f'"{title}" ha sido agregada.')
        return task

    async def move_task(self, task_id: str, source_column_id: str, dest_column_id: str) -> bool:
        """Drag-and-drop: append the task to the tail of the destination column.

        Moving within the same column is a no-op and issues no remote write.
        """
        if source_column_id == dest_column_id:
            return False
        board = self._require_board()
        source = board.columns.get(source_column_id)
        dest = board.columns.get(dest_column_id)
        if source is None or dest is None:
            self._not_found("Columna", source_column_id if source is None else dest_column_id)
            return False
        index = source.index_of(task_id)
        if index is None:
            self._not_found("Tarea", task_id)
            return False

        task = source.tasks.pop(index)
        previous_position = task.position
        task.position = dest.reserve_position()
        task.column_id = dest.id
        dest.tasks.append(task)

        try:
            await self.persistence.move_task(task_id, dest.id, task.position)
        except NotFound as e:
            self._forget_task(task_id)
            self._write_failed("Error al mover", e)
            return False
        except PersistenceError as e:
            self._revert_move(task_id, source, dest, index, previous_position)
            self._write_failed("Error al mover", e)
            return False

        self._notify(Severity.INFO, "Tarea Movida", f"Ubicación actualizada: {dest.title}")
        return True

    async def update_task(self, updated: Task) -> bool:
        """Replace a task with an edited snapshot, then write its editable fields."""
        board = self._require_board()
        try:
            title = _require_text(updated.title, "Task title")
        except ValidationError as e:
            logger.debug(f"update_task ignored: {e}")
            return False

        located = board.locate(updated.id)
        if located is None:
            self._not_found("Tarea", updated.id)
            return False
        column, index = located
        previous = column.tasks[index]
        # Location is owned by moves, not by edits
        snapshot = replace(updated, title=title, column_id=column.id, position=previous.position)
        column.tasks[index] = snapshot

        try:
            await self.persistence.update_task(
                snapshot.id, snapshot.title, snapshot.description,
                snapshot.priority, snapshot.due_date,
            )
        except NotFound as e:
            self._forget_task(snapshot.id)
            self._write_failed("Error al actualizar", e)
            return False
        except PersistenceError as e:
            self._revert_update(previous, snapshot)
            self._write_failed("Error al actualizar", e)
            return False
        return True

    async def edit_task(self, task_id: str, **changes) -> bool:
        """update_task with a snapshot built from field changes (description=..., priority=...)"""
        board = self._require_board()
        task = board.find_task(task_id)
        if task is None:
            self._not_found("Tarea", task_id)
            return False
        return await self.update_task(replace(task, **changes))

    async def archive_task(self, task_id: str) -> bool:
        """Hard delete. Clears the selection if it pointed at this task."""
        board = self._require_board()
        located = board.locate(task_id)
        if located is None:
            self._not_found("Tarea", task_id)
            return False
        column, index = located
        task = column.tasks.pop(index)
        if self.selected_task_id == task_id:
            self.selected_task_id = None

        try:
            await self.persistence.delete_task(task_id)
        except NotFound:
            logger.info(f"Task {task_id} was already gone remotely")
        except PersistenceError as e:
            if board.locate(task_id) is None:
                column.tasks.insert(min(index, len(column.tasks)), task)
            self._write_failed("Error al archivar", e)
            return False

        self._notify(Severity.WARNING, "Registro Archivado", "La tarea ha sido eliminada del tablero.")
        return True

    async def duplicate_task(self, task_id: str) -> Optional[Task]:
        """Copy the scalar fields into a new task in the same column; sub-entities are not copied."""
        board = self._require_board()
        located = board.locate(task_id)
        if located is None:
            self._not_found("Tarea", task_id)
            return None
        column, index = located
        source = column.tasks[index]

        try:
            record = await self.persistence.create_task(
                column.id, f"{source.title}{COPY_SUFFIX}", source.priority,
                description=source.description, due_date=source.due_date,
                position=column.reserve_position(),
            )
        except PersistenceError as e:
            self._write_failed("Error al duplicar", e)
            return None

        copy = Task.from_record(record)
        self._append(copy)
        self._notify(Severity.SUCCESS, "Tarea Duplicada", "Se ha creado una copia técnica del registro.")
        return copy

    # ============================================================
    # CHECKLIST
    # ============================================================

    async def add_checklist_item(self, task_id: str, text: str) -> Optional[ChecklistItem]:
        board = self._require_board()
        try:
            text = _require_text(text, "Checklist text")
        except ValidationError as e:
            logger.debug(f"add_checklist_item ignored: {e}")
            return None
        if board.find_task(task_id) is None:
            self._not_found("Tarea", task_id)
            return None

        try:
            record = await self.persistence.add_checklist_item(task_id, text)
        except PersistenceError as e:
            self._write_failed("Error", e)
            return None

        item = ChecklistItem.from_record(record)
        task = self._current_task(task_id)
        if task is not None:
            task.checklist.append(item)
        return item

    async def toggle_checklist_item(self, task_id: str, item_id: str) -> Optional[bool]:
        """Flip an item's completed flag; returns the new flag, None on failure."""
        board = self._require_board()
        task = board.find_task(task_id)
        item = task.find_checklist_item(item_id) if task else None
        if item is None:
            self._not_found("Elemento", item_id)
            return None

        completed = not item.completed
        item.completed = completed
        try:
            await self.persistence.set_checklist_item(task_id, item_id, completed)
        except PersistenceError as e:
            if item.completed == completed:
                item.completed = not completed
            self._write_failed("Error", e)
            return None
        return completed

    # ============================================================
    # COMMENTS
    # ============================================================

    async def post_comment(self, task_id: str, text: str, author: Optional[str] = None) -> Optional[Comment]:
        """Append a comment once the store has stamped its creation time."""
        board = self._require_board()
        try:
            text = _require_text(text, "Comment")
        except ValidationError as e:
            logger.debug(f"post_comment ignored: {e}")
            return None
        if board.find_task(task_id) is None:
            self._not_found("Tarea", task_id)
            return None
        author_name = (author or self.user_name or "").strip() or UNKNOWN_AUTHOR

        try:
            record = await self.persistence.add_comment(task_id, author_name, text)
        except PersistenceError as e:
            self._write_failed("Error", e)
            return None

        comment = Comment.from_record(record)
        task = self._current_task(task_id)
        if task is not None:
            task.comments.append(comment)
        return comment

    # ============================================================
    # LABELS, ASSIGNEES, ATTACHMENTS
    # ============================================================

    async def toggle_label(self, task_id: str, name: str, color: Optional[str] = None) -> Optional[bool]:
        """Add or remove a label by name; returns whether the task now carries it."""
        board = self._require_board()
        task = board.find_task(task_id)
        if task is None:
            self._not_found("Tarea", task_id)
            return None

        try:
            if task.find_label(name):
                await self.persistence.remove_label(task_id, name)
                task = self._current_task(task_id)
                if task is not None:
                    task.labels = [l for l in task.labels if l.name != name]
                return False
            record = await self.persistence.add_label(task_id, name, color or LABEL_PALETTE.get(name, "blue"))
        except PersistenceError as e:
            self._write_failed("Error", e)
            return None

        task = self._current_task(task_id)
        if task is not None:
            task.labels.append(Label.from_record(record))
        return True

    async def toggle_assignee(self, task_id: str, user_id: str, initials: str) -> Optional[bool]:
        """Assign or unassign a user; returns whether the user is now assigned."""
        board = self._require_board()
        task = board.find_task(task_id)
        if task is None:
            self._not_found("Tarea", task_id)
            return None

        try:
            if task.find_assignee(user_id):
                await self.persistence.remove_assignee(task_id, user_id)
                task = self._current_task(task_id)
                if task is not None:
                    task.assignees = [a for a in task.assignees if a.id != user_id]
                return False
            record = await self.persistence.add_assignee(task_id, user_id, initials)
        except PersistenceError as e:
            self._write_failed("Error de Asignación", e)
            return None

        task = self._current_task(task_id)
        if task is not None:
            task.assignees.append(Assignee.from_record(record))
        return True

    async def add_attachment(
        self, task_id: str, name: str, url: str,
        content_type: Optional[str] = None, size: int = 0,
    ) -> Optional[Attachment]:
        """Record a blob that has already been uploaded to document storage."""
        board = self._require_board()
        if board.find_task(task_id) is None:
            self._not_found("Tarea", task_id)
            return None

        try:
            record = await self.persistence.create_attachment(task_id, name, url, content_type, size)
        except PersistenceError as e:
            self._write_failed("Error de carga", e)
            return None

        attachment = Attachment.from_record(record)
        task = self._current_task(task_id)
        if task is not None:
            task.attachments.append(attachment)
        self._notify(Severity.SUCCESS, "Éxito", "Archivo adjuntado.")
        return attachment

    # ============================================================
    # INTERNAL HELPERS
    # ============================================================

    def _require_board(self) -> Board:
        if self.board is None:
            raise BoardSyncError("Board not loaded; call load() first")
        return self.board

    def _current_task(self, task_id: str) -> Optional[Task]:
        # Re-resolved after every await: the board may have been reloaded meanwhile
        return self.board.find_task(task_id) if self.board else None

    def _append(self, task: Task):
        if self.board is None:
            return
        column = self.board.columns.get(task.column_id)
        if column is not None and column.index_of(task.id) is None:
            column.insert_in_order(task)

    def _revert_move(self, task_id: str, source: Column, dest: Column, index: int, previous_position: int):
        current = dest.index_of(task_id)
        if current is None:
            logger.info(f"Move of {task_id} superseded before its write failed; not reverting")
            return
        task = dest.tasks.pop(current)
        task.column_id = source.id
        task.position = previous_position
        source.tasks.insert(min(index, len(source.tasks)), task)
        logger.info(f"Reverted move of {task_id} back to column {source.id}")

    def _revert_update(self, previous: Task, snapshot: Task):
        located = self.board.locate(snapshot.id) if self.board else None
        if located is None:
            return
        column, index = located
        if column.tasks[index] is not snapshot:
            logger.info(f"Update of {snapshot.id} superseded before its write failed; not reverting")
            return
        column.tasks[index] = replace(previous, column_id=column.id, position=snapshot.position)
        logger.info(f"Reverted update of {snapshot.id}")

    def _forget_task(self, task_id: str):
        """Drop a task the store no longer has"""
        located = self.board.locate(task_id) if self.board else None
        if located is not None:
            column, index = located
            column.tasks.pop(index)
        if self.selected_task_id == task_id:
            self.selected_task_id = None

    def _not_found(self, kind: str, ident: str):
        logger.warning(f"{kind} {ident} not found on board")
        self._notify(Severity.ERROR, "Registro no encontrado", f"{kind} {ident} no existe en el tablero.")

    def _write_failed(self, title: str, error: PersistenceError):
        logger.error(f"{title}: {error}")
        self._notify(Severity.ERROR, title, str(error))

    def _notify(self, severity: Severity, title: str, message: str):
        self.notifications.notify(severity, title, message)
