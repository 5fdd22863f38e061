# tests/test_board_sync.py — BoardSync end-to-end through the REST persistence service
import asyncio
from dataclasses import replace
from datetime import date
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from models import TaskPriority
from sync.board_sync import BoardSync, COPY_SUFFIX, DEFAULT_COLUMN_TITLES
from sync.errors import BoardSyncError, LoadError, NotFound, WriteError
from sync.notifications import Severity
from tests.conftest import column_titled


def _failing(message="store unavailable", status_code=503):
    return AsyncMock(side_effect=WriteError(message, status_code=status_code))


# ============================================================
# LOAD
# ============================================================

@pytest.mark.asyncio
async def test_load_bootstraps_default_columns_once(client: AsyncClient, persistence, sink, projects_board):
    board_sync = BoardSync(persistence, notifications=sink)
    board = await board_sync.load()
    assert [c.title for c in board.ordered_columns()] == list(DEFAULT_COLUMN_TITLES)
    assert [c.position for c in board.ordered_columns()] == [0, 1, 2, 3]

    await board_sync.load()
    await BoardSync(persistence, notifications=sink).load()
    resp = await client.get(f"/api/v1/boards/{projects_board['id']}/columns")
    assert [c["title"] for c in resp.json()] == list(DEFAULT_COLUMN_TITLES)


@pytest.mark.asyncio
async def test_load_is_idempotent(sync, persistence):
    first = column_titled(sync, "Identificadas")
    second = column_titled(sync, "Análisis")
    await sync.create_task("Revisar fachada")
    await sync.create_task("Calibrar equipos")
    await sync.create_task("Auditar proveedor", column_id=second.id)

    before = sync.board.snapshot()
    assert len(before[0][1]) == 2 and before[0][0] == first.id

    assert (await sync.load()).snapshot() == before
    assert (await BoardSync(persistence).load()).snapshot() == before


@pytest.mark.asyncio
async def test_load_missing_board_raises_not_found(persistence, sink):
    board_sync = BoardSync(persistence, notifications=sink)
    with pytest.raises(NotFound):
        await board_sync.load()
    assert board_sync.board is None
    assert sink.events[0][0] == Severity.WARNING
    assert sink.titles == ["Tablero no encontrado"]


@pytest.mark.asyncio
async def test_load_read_failure(persistence, sink, projects_board, monkeypatch):
    monkeypatch.setattr(persistence, "get_columns", AsyncMock(side_effect=LoadError("db down", status_code=503)))
    board_sync = BoardSync(persistence, notifications=sink)
    with pytest.raises(LoadError):
        await board_sync.load()
    assert sink.titles == ["Error de Datos"]


@pytest.mark.asyncio
async def test_load_bootstrap_failure_is_a_load_error(persistence, sink, projects_board, monkeypatch):
    monkeypatch.setattr(persistence, "create_default_columns", _failing())
    with pytest.raises(LoadError):
        await BoardSync(persistence, notifications=sink).load()
    assert sink.titles == ["Error de Datos"]


@pytest.mark.asyncio
async def test_load_resumes_interrupted_bootstrap(client: AsyncClient, persistence, sink, projects_board, monkeypatch):
    real_create_column = persistence.create_column
    calls = []

    async def third_insert_fails(board_id, title, position):
        calls.append(title)
        if len(calls) == 3:
            raise WriteError("connection reset", status_code=502)
        return await real_create_column(board_id, title, position)

    monkeypatch.setattr(persistence, "create_column", third_insert_fails)
    board_sync = BoardSync(persistence, notifications=sink)
    with pytest.raises(LoadError):
        await board_sync.load()
    monkeypatch.undo()

    board = await board_sync.load()
    assert [c.title for c in board.ordered_columns()] == list(DEFAULT_COLUMN_TITLES)
    assert [c.position for c in board.ordered_columns()] == [0, 1, 2, 3]

    resp = await client.get(f"/api/v1/boards/{projects_board['id']}/columns")
    assert [c["title"] for c in resp.json()] == list(DEFAULT_COLUMN_TITLES)


@pytest.mark.asyncio
async def test_custom_columns_are_not_topped_up(client: AsyncClient, persistence, projects_board):
    resp = await client.post(f"/api/v1/boards/{projects_board['id']}/columns", json={"title": "Backlog"})
    assert resp.status_code == 200

    board = await BoardSync(persistence).load()
    assert [c.title for c in board.ordered_columns()] == ["Backlog"]


@pytest.mark.asyncio
async def test_operations_require_loaded_board(persistence):
    with pytest.raises(BoardSyncError):
        await BoardSync(persistence).create_task("Revisar fachada")


@pytest.mark.asyncio
async def test_refresh_drops_stale_selection(sync, client: AsyncClient):
    task = await sync.create_task("Revisar fachada")
    sync.select_task(task.id)
    await client.delete(f"/api/v1/tasks/{task.id}")

    await sync.refresh()
    assert sync.selected_task_id is None


# ============================================================
# CREATE
# ============================================================

@pytest.mark.asyncio
async def test_create_task_appends_to_first_column(sync, sink):
    task = await sync.create_task("  Revisar fachada ", priority="Alta", due_date=date(2026, 11, 30))
    first = column_titled(sync, "Identificadas")

    assert first.tasks[-1] is task
    assert task.title == "Revisar fachada"
    assert task.priority == TaskPriority.ALTA
    assert task.due_date == date(2026, 11, 30)
    assert task.checklist == [] and task.comments == []
    assert sink.titles == ["Tarea Creada"]


@pytest.mark.asyncio
async def test_create_task_lands_at_tail(sync):
    analysis = column_titled(sync, "Análisis")
    a = await sync.create_task("Primera", column_id=analysis.id)
    b = await sync.create_task("Segunda", column_id=analysis.id)
    assert [t.id for t in analysis.tasks] == [a.id, b.id]
    assert b.position > a.position


@pytest.mark.asyncio
async def test_overlapping_creates_get_distinct_positions(sync, persistence, monkeypatch):
    column = column_titled(sync, "Identificadas")
    gate = asyncio.Event()
    real_create = persistence.create_task
    sent_positions = []

    async def first_insert_held(*args, **kwargs):
        sent_positions.append(kwargs["position"])
        if len(sent_positions) == 1:
            await gate.wait()
        return await real_create(*args, **kwargs)

    monkeypatch.setattr(persistence, "create_task", first_insert_held)

    pending = asyncio.ensure_future(sync.create_task("Primera"))
    await asyncio.sleep(0)
    second = await sync.create_task("Segunda")
    gate.set()
    first = await pending

    assert sent_positions == [0, 1]
    assert [t.id for t in column.tasks] == [first.id, second.id]

    local = sync.board.snapshot()
    assert (await sync.load()).snapshot() == local


@pytest.mark.asyncio
async def test_blank_title_never_reaches_remote(sync, persistence, sink, monkeypatch):
    remote = AsyncMock()
    monkeypatch.setattr(persistence, "create_task", remote)

    assert await sync.create_task("   ") is None
    assert await sync.create_task("") is None
    remote.assert_not_called()
    assert sink.events == []


@pytest.mark.asyncio
async def test_create_failure_leaves_board_untouched(sync, persistence, sink, monkeypatch):
    before = sync.board.snapshot()
    monkeypatch.setattr(persistence, "create_task", _failing())

    assert await sync.create_task("Revisar fachada") is None
    assert sync.board.snapshot() == before
    assert sink.events[-1][0] == Severity.ERROR


# ============================================================
# MOVE
# ============================================================

@pytest.mark.asyncio
async def test_move_task_between_columns(sync, sink):
    source = column_titled(sync, "Identificadas")
    dest = column_titled(sync, "Análisis")
    waiting = await sync.create_task("Ya en análisis", column_id=dest.id)
    task = await sync.create_task("Revisar fachada")
    sink.clear()

    assert await sync.move_task(task.id, source.id, dest.id) is True
    assert source.index_of(task.id) is None
    assert [t.id for t in dest.tasks] == [waiting.id, task.id]
    assert task.column_id == dest.id
    assert sink.titles == ["Tarea Movida"]
    assert "Análisis" in sink.events[0][2]

    # Persisted: a reload renders the same order
    before = sync.board.snapshot()
    assert (await sync.load()).snapshot() == before


@pytest.mark.asyncio
async def test_move_to_same_column_is_noop(sync, persistence, sink, monkeypatch):
    column = column_titled(sync, "Identificadas")
    task = await sync.create_task("Revisar fachada")
    sink.clear()
    remote = AsyncMock()
    monkeypatch.setattr(persistence, "move_task", remote)

    before = sync.board.snapshot()
    assert await sync.move_task(task.id, column.id, column.id) is False
    assert sync.board.snapshot() == before
    remote.assert_not_called()
    assert sink.events == []


@pytest.mark.asyncio
async def test_move_requires_task_in_source(sync, persistence, monkeypatch):
    task = await sync.create_task("Revisar fachada")
    remote = AsyncMock()
    monkeypatch.setattr(persistence, "move_task", remote)

    wrong_source = column_titled(sync, "Verificación")
    assert await sync.move_task(task.id, wrong_source.id, column_titled(sync, "Análisis").id) is False
    remote.assert_not_called()


@pytest.mark.asyncio
async def test_move_reverts_on_write_failure(sync, persistence, sink, monkeypatch):
    source = column_titled(sync, "Identificadas")
    dest = column_titled(sync, "Análisis")
    tasks = [await sync.create_task(title) for title in ("Uno", "Dos", "Tres")]
    before = sync.board.snapshot()
    old_position = tasks[1].position
    sink.clear()
    monkeypatch.setattr(persistence, "move_task", _failing())

    assert await sync.move_task(tasks[1].id, source.id, dest.id) is False
    assert sync.board.snapshot() == before
    assert tasks[1].column_id == source.id
    assert tasks[1].position == old_position
    assert sink.titles == ["Error al mover"]


@pytest.mark.asyncio
async def test_failed_move_does_not_undo_a_later_move(sync, persistence, monkeypatch):
    first = column_titled(sync, "Identificadas")
    second = column_titled(sync, "Análisis")
    third = column_titled(sync, "Plan de Acción")
    task = await sync.create_task("Revisar fachada")

    gate = asyncio.Event()
    real_move = persistence.move_task
    calls = []

    async def slow_then_failing(task_id, column_id, position=None):
        calls.append(column_id)
        if len(calls) == 1:
            await gate.wait()
            raise WriteError("timeout", status_code=504)
        return await real_move(task_id, column_id, position)

    monkeypatch.setattr(persistence, "move_task", slow_then_failing)

    pending = asyncio.ensure_future(sync.move_task(task.id, first.id, second.id))
    await asyncio.sleep(0)
    assert await sync.move_task(task.id, second.id, third.id) is True
    gate.set()
    assert await pending is False

    assert sync.board.locate(task.id)[0] is third


@pytest.mark.asyncio
async def test_move_of_remotely_deleted_task_drops_it(sync, client: AsyncClient):
    source = column_titled(sync, "Identificadas")
    dest = column_titled(sync, "Análisis")
    task = await sync.create_task("Revisar fachada")
    await client.delete(f"/api/v1/tasks/{task.id}")

    assert await sync.move_task(task.id, source.id, dest.id) is False
    assert sync.board.find_task(task.id) is None


# ============================================================
# UPDATE
# ============================================================

@pytest.mark.asyncio
async def test_update_task_replaces_in_place(sync, client: AsyncClient):
    column = column_titled(sync, "Identificadas")
    await sync.create_task("Antes")
    task = await sync.create_task("Revisar fachada", description="inicial")

    edited = replace(task, description="Inspección visual completa", priority=TaskPriority.CRITICA)
    assert await sync.update_task(edited) is True

    assert column.index_of(task.id) == 1
    current = sync.board.find_task(task.id)
    assert current.description == "Inspección visual completa"
    assert current.priority == TaskPriority.CRITICA

    remote = (await client.get(f"/api/v1/tasks/{task.id}")).json()
    assert remote["description"] == "Inspección visual completa"
    assert remote["priority"] == "Crítica"


@pytest.mark.asyncio
async def test_update_task_reverts_on_failure(sync, persistence, sink, monkeypatch):
    task = await sync.create_task("Revisar fachada", description="inicial")
    monkeypatch.setattr(persistence, "update_task", _failing())

    assert await sync.update_task(replace(task, description="cambiada")) is False
    assert sync.board.find_task(task.id).description == "inicial"
    assert sink.titles[-1] == "Error al actualizar"


@pytest.mark.asyncio
async def test_update_keeps_location(sync):
    task = await sync.create_task("Revisar fachada")
    elsewhere = column_titled(sync, "Verificación")

    assert await sync.update_task(replace(task, column_id=elsewhere.id, position=99, title="Nuevo"))
    current = sync.board.find_task(task.id)
    assert current.column_id == column_titled(sync, "Identificadas").id
    assert current.position == task.position


@pytest.mark.asyncio
async def test_update_with_blank_title_ignored(sync, persistence, monkeypatch):
    task = await sync.create_task("Revisar fachada")
    remote = AsyncMock()
    monkeypatch.setattr(persistence, "update_task", remote)

    assert await sync.update_task(replace(task, title="  ")) is False
    remote.assert_not_called()
    assert sync.board.find_task(task.id).title == "Revisar fachada"


@pytest.mark.asyncio
async def test_edit_task_changes_fields(sync, client: AsyncClient):
    task = await sync.create_task("Revisar fachada")
    assert await sync.edit_task(task.id, description="Revisión de juntas", due_date=date(2026, 12, 1))

    sync.select_task(task.id)
    assert sync.selected_task.description == "Revisión de juntas"
    remote = (await client.get(f"/api/v1/tasks/{task.id}")).json()
    assert remote["due_date"] == "2026-12-01"


# ============================================================
# ARCHIVE & DUPLICATE
# ============================================================

@pytest.mark.asyncio
async def test_archive_removes_task_and_clears_selection(sync, sink, client: AsyncClient):
    task = await sync.create_task("Revisar fachada")
    sync.select_task(task.id)
    sink.clear()

    assert await sync.archive_task(task.id) is True
    assert sync.board.find_task(task.id) is None
    assert sync.selected_task is None
    assert sink.titles == ["Registro Archivado"]
    assert (await client.get(f"/api/v1/tasks/{task.id}")).status_code == 404


@pytest.mark.asyncio
async def test_archive_restores_task_on_failure(sync, persistence, monkeypatch):
    column = column_titled(sync, "Identificadas")
    await sync.create_task("Uno")
    task = await sync.create_task("Dos")
    await sync.create_task("Tres")
    before = sync.board.snapshot()
    monkeypatch.setattr(persistence, "delete_task", _failing())

    assert await sync.archive_task(task.id) is False
    assert sync.board.snapshot() == before
    assert column.index_of(task.id) == 1


@pytest.mark.asyncio
async def test_duplicate_copies_fields_not_sub_entities(sync, sink):
    column = column_titled(sync, "Identificadas")
    task = await sync.create_task(
        "Revisar fachada", priority=TaskPriority.ALTA,
        description="Grietas en muro norte", due_date=date(2026, 11, 15),
    )
    for text in ("Paso 1", "Paso 2", "Paso 3"):
        await sync.add_checklist_item(task.id, text)
    await sync.post_comment(task.id, "Primera visita")
    await sync.post_comment(task.id, "Segunda visita")
    sink.clear()

    copy = await sync.duplicate_task(task.id)

    assert copy.id != task.id
    assert copy.title == "Revisar fachada" + COPY_SUFFIX
    assert copy.description == task.description
    assert copy.priority == TaskPriority.ALTA
    assert copy.due_date == date(2026, 11, 15)
    assert copy.checklist == [] and copy.comments == []
    assert column.tasks[-1] is copy
    assert len(task.checklist) == 3 and len(task.comments) == 2
    assert sink.titles == ["Tarea Duplicada"]


# ============================================================
# CHECKLIST & COMMENTS
# ============================================================

@pytest.mark.asyncio
async def test_checklist_toggle_updates_progress(sync, client: AsyncClient):
    task = await sync.create_task("Revisar fachada")
    first = await sync.add_checklist_item(task.id, "Verificar anclajes")
    await sync.add_checklist_item(task.id, "Fotografiar juntas")
    assert task.checklist_progress == (0, 2)

    assert await sync.toggle_checklist_item(task.id, first.id) is True
    assert task.checklist_progress == (1, 2)
    assert task.progress_percent == 50

    assert await sync.toggle_checklist_item(task.id, first.id) is False
    assert task.checklist_progress == (0, 2)

    await sync.toggle_checklist_item(task.id, first.id)
    remote = (await client.get(f"/api/v1/tasks/{task.id}")).json()
    assert [i["completed"] for i in remote["checklist"]] == [True, False]


@pytest.mark.asyncio
async def test_checklist_toggle_reverts_on_failure(sync, persistence, monkeypatch):
    task = await sync.create_task("Revisar fachada")
    item = await sync.add_checklist_item(task.id, "Verificar anclajes")
    monkeypatch.setattr(persistence, "set_checklist_item", _failing())

    assert await sync.toggle_checklist_item(task.id, item.id) is None
    assert item.completed is False
    assert task.checklist_progress == (0, 1)


@pytest.mark.asyncio
async def test_blank_checklist_text_ignored(sync, persistence, monkeypatch):
    task = await sync.create_task("Revisar fachada")
    remote = AsyncMock()
    monkeypatch.setattr(persistence, "add_checklist_item", remote)

    assert await sync.add_checklist_item(task.id, "   ") is None
    remote.assert_not_called()
    assert task.checklist == []


@pytest.mark.asyncio
async def test_comments_are_append_only(sync):
    task = await sync.create_task("Revisar fachada")
    first = await sync.post_comment(task.id, "Visita inicial")
    await sync.post_comment(task.id, "Anclajes revisados")
    await sync.post_comment(task.id, "Cierre", author="Luis Gómez")

    assert [c.text for c in task.comments] == ["Visita inicial", "Anclajes revisados", "Cierre"]
    assert task.comments[0] is first
    assert first.author == "Ana Pérez" and first.text == "Visita inicial"
    assert task.comments[2].author == "Luis Gómez"
    assert all(c.created_at is not None for c in task.comments)

    reloaded = (await sync.load()).find_task(task.id)
    assert [c.text for c in reloaded.comments] == ["Visita inicial", "Anclajes revisados", "Cierre"]


@pytest.mark.asyncio
async def test_comment_failure_leaves_thread_untouched(sync, persistence, sink, monkeypatch):
    task = await sync.create_task("Revisar fachada")
    await sync.post_comment(task.id, "Visita inicial")
    monkeypatch.setattr(persistence, "add_comment", _failing())

    assert await sync.post_comment(task.id, "Se perderá") is None
    assert [c.text for c in task.comments] == ["Visita inicial"]
    assert sink.events[-1][0] == Severity.ERROR


@pytest.mark.asyncio
async def test_blank_comment_ignored(sync, sink):
    task = await sync.create_task("Revisar fachada")
    sink.clear()
    assert await sync.post_comment(task.id, " \n ") is None
    assert task.comments == []
    assert sink.events == []


# ============================================================
# LABELS, ASSIGNEES, ATTACHMENTS
# ============================================================

@pytest.mark.asyncio
async def test_toggle_label(sync, client: AsyncClient):
    task = await sync.create_task("Revisar fachada")

    assert await sync.toggle_label(task.id, "CALIDAD") is True
    assert [(l.name, l.color) for l in task.labels] == [("CALIDAD", "red")]

    assert await sync.toggle_label(task.id, "CALIDAD") is False
    assert task.labels == []
    remote = (await client.get(f"/api/v1/tasks/{task.id}")).json()
    assert remote["labels"] == []


@pytest.mark.asyncio
async def test_toggle_label_with_reserved_characters(sync, client: AsyncClient):
    task = await sync.create_task("Revisar fachada")
    other = await sync.create_task("Otra")
    name = "PLANTA 2/L4?v=1"

    assert await sync.toggle_label(task.id, name) is True
    await sync.toggle_label(other.id, name)
    assert await sync.toggle_label(task.id, name) is False

    remote = (await client.get(f"/api/v1/tasks/{task.id}")).json()
    assert remote["labels"] == []
    untouched = (await client.get(f"/api/v1/tasks/{other.id}")).json()
    assert [l["name"] for l in untouched["labels"]] == [name]


@pytest.mark.asyncio
async def test_toggle_assignee(sync):
    task = await sync.create_task("Revisar fachada")

    assert await sync.toggle_assignee(task.id, "u-ana", "AP") is True
    assert [(a.id, a.initials) for a in task.assignees] == [("u-ana", "AP")]

    assert await sync.toggle_assignee(task.id, "u-ana", "AP") is False
    assert task.assignees == []


@pytest.mark.asyncio
async def test_toggle_assignee_failure(sync, persistence, sink, monkeypatch):
    task = await sync.create_task("Revisar fachada")
    monkeypatch.setattr(persistence, "add_assignee", _failing())

    assert await sync.toggle_assignee(task.id, "u-ana", "AP") is None
    assert task.assignees == []
    assert sink.titles[-1] == "Error de Asignación"


@pytest.mark.asyncio
async def test_add_attachment(sync, sink):
    task = await sync.create_task("Revisar fachada")
    att = await sync.add_attachment(
        task.id, "informe.pdf", "https://files.example.com/informe.pdf",
        content_type="application/pdf", size=4096,
    )
    assert task.attachments == [att]
    assert att.size == 4096
    assert sink.events[-1][0] == Severity.SUCCESS


# ============================================================
# WALKTHROUGH
# ============================================================

@pytest.mark.asyncio
async def test_quality_record_walkthrough(sync):
    identified = column_titled(sync, "Identificadas")
    analysis = column_titled(sync, "Análisis")
    assert all(c.tasks == [] for c in sync.columns)

    task = await sync.create_task("Revisar fachada", priority=TaskPriority.MEDIA)
    assert identified.tasks[-1].id == task.id

    assert await sync.move_task(task.id, identified.id, analysis.id)
    assert analysis.tasks[-1].id == task.id
    assert identified.tasks == []

    item = await sync.add_checklist_item(task.id, "Verificar anclajes")
    await sync.toggle_checklist_item(task.id, item.id)
    assert task.checklist_progress == (1, 1)
    assert task.progress_percent == 100

    assert await sync.archive_task(task.id)
    assert all(c.index_of(task.id) is None for c in sync.columns)
