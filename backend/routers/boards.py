# routers/boards.py — Board provisioning and column ordering
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db_session
from models import Board, BoardColumn
from schemas import BoardCreate, BoardOut, ColumnCreate, ColumnOut

router = APIRouter(prefix="/api/v1/boards", tags=["Boards"])


def _board_out(board: Board) -> BoardOut:
    return BoardOut(id=board.id, type=board.type, name=board.name or "", created_at=board.created_at)


def _column_out(col: BoardColumn) -> ColumnOut:
    return ColumnOut(id=col.id, board_id=col.board_id, title=col.title, position=col.position)


async def get_board_or_404(board_id: str, db: AsyncSession) -> Board:
    result = await db.execute(select(Board).where(Board.id == board_id))
    board = result.scalar_one_or_none()
    if not board:
        raise HTTPException(status_code=404, detail="Board not found")
    return board


# ============================================================
# BOARD ENDPOINTS
# ============================================================

@router.post("", response_model=BoardOut)
async def create_board(
    data: BoardCreate,
    db: AsyncSession = Depends(get_db_session),
):
    """Provision a board for a workflow type (columns are created lazily by clients)"""
    board = Board(type=data.type, name=data.name)
    db.add(board)
    await db.commit()
    await db.refresh(board)
    return _board_out(board)


@router.get("", response_model=BoardOut)
async def get_board_by_type(
    type: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db_session),
):
    """Newest board of the given type"""
    stmt = (
        select(Board)
        .where(Board.type == type)
        .order_by(Board.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    board = result.scalar_one_or_none()
    if not board:
        raise HTTPException(status_code=404, detail=f"No board of type '{type}'")
    return _board_out(board)


# ============================================================
# COLUMN ENDPOINTS
# ============================================================

@router.get("/{board_id}/columns", response_model=List[ColumnOut])
async def list_columns(
    board_id: str,
    db: AsyncSession = Depends(get_db_session),
):
    await get_board_or_404(board_id, db)
    stmt = (
        select(BoardColumn)
        .where(BoardColumn.board_id == board_id)
        .order_by(BoardColumn.position.asc(), BoardColumn.created_at.asc())
    )
    result = await db.execute(stmt)
    return [_column_out(c) for c in result.scalars().all()]


@router.post("/{board_id}/columns", response_model=ColumnOut)
async def create_column(
    board_id: str,
    data: ColumnCreate,
    db: AsyncSession = Depends(get_db_session),
):
    """Add a column; without an explicit position it goes to the right end"""
    await get_board_or_404(board_id, db)

    position: Optional[int] = data.position
    if position is None:
        max_stmt = select(func.max(BoardColumn.position)).where(BoardColumn.board_id == board_id)
        max_pos = (await db.execute(max_stmt)).scalar()
        position = 0 if max_pos is None else max_pos + 1

    col = BoardColumn(board_id=board_id, title=data.title, position=position)
    db.add(col)
    await db.commit()
    await db.refresh(col)
    return _column_out(col)
