# tests/test_board_state.py — In-memory board arena
from datetime import datetime, timezone

from models import TaskPriority
from schemas import BoardOut, ChecklistItemOut, ColumnOut, CommentOut, TaskOut
from sync.board_state import Board, ChecklistItem, Task


def _task_out(task_id, column_id, position, **extra):
    return TaskOut(
        id=task_id, board_id="b1", column_id=column_id, title=task_id,
        priority=TaskPriority.MEDIA, position=position, **extra,
    )


def _board(tasks):
    columns = [
        ColumnOut(id="c2", board_id="b1", title="Análisis", position=1),
        ColumnOut(id="c1", board_id="b1", title="Identificadas", position=0),
    ]
    return Board.from_records(BoardOut(id="b1", type="projects"), columns, tasks)


def test_columns_ordered_by_position():
    board = _board([])
    assert [c.title for c in board.ordered_columns()] == ["Identificadas", "Análisis"]
    assert board.first_column().id == "c1"


def test_tasks_grouped_and_sorted():
    board = _board([
        _task_out("t3", "c1", 2),
        _task_out("t1", "c1", 0),
        _task_out("t2", "c2", 0),
        _task_out("t4", "c1", 1),
    ])
    assert board.snapshot() == [("c1", ["t1", "t4", "t3"]), ("c2", ["t2"])]


def test_position_ties_keep_store_order():
    board = _board([_task_out("a", "c1", 0), _task_out("b", "c1", 0)])
    assert [t.id for t in board.columns["c1"].tasks] == ["a", "b"]


def test_tasks_of_unknown_column_are_dropped():
    board = _board([_task_out("t1", "elsewhere", 0)])
    assert board.all_tasks() == []


def test_locate_and_find():
    board = _board([_task_out("t1", "c1", 0), _task_out("t2", "c2", 0)])
    col, idx = board.locate("t2")
    assert col.id == "c2" and idx == 0
    assert board.find_task("t1").column_id == "c1"
    assert board.locate("missing") is None


def test_next_position():
    board = _board([_task_out("t1", "c1", 4), _task_out("t2", "c1", 7)])
    assert board.columns["c1"].next_position() == 8
    assert board.columns["c2"].next_position() == 0


def test_checklist_progress_is_derived():
    task = Task(id="t1", column_id="c1", title="Revisar fachada")
    assert task.checklist_progress == (0, 0)
    assert task.progress_percent == 0

    task.checklist = [ChecklistItem(id="i1", text="a"), ChecklistItem(id="i2", text="b", completed=True)]
    assert task.checklist_progress == (1, 2)
    assert task.progress_percent == 50

    task.checklist[0].completed = True
    assert task.checklist_progress == (2, 2)
    assert task.progress_percent == 100


def test_from_record_carries_sub_entities():
    now = datetime.now(timezone.utc)
    rec = _task_out(
        "t1", "c1", 0,
        checklist=[ChecklistItemOut(id="i1", text="Verificar anclajes", completed=True)],
        comments=[CommentOut(id="m1", author_name="Ana", content="ok", created_at=now)],
    )
    task = Task.from_record(rec)
    assert task.find_checklist_item("i1").completed is True
    assert task.comments[0].author == "Ana"
    assert task.comments[0].text == "ok"
    assert task.comments[0].created_at == now


def test_reserved_positions_are_never_reused():
    column = _board([_task_out("t1", "c1", 2)]).columns["c1"]
    assert column.reserve_position() == 3
    assert column.reserve_position() == 4
    assert column.next_position() == 3


def test_insert_in_order_keeps_positions_sorted():
    column = _board([_task_out("t1", "c1", 0), _task_out("t3", "c1", 2)]).columns["c1"]
    column.insert_in_order(Task(id="t4", column_id="c1", title="t4", position=3))
    column.insert_in_order(Task(id="t2", column_id="c1", title="t2", position=1))
    assert [t.id for t in column.tasks] == ["t1", "t2", "t3", "t4"]
