#!/usr/bin/env python3
"""
QMS Boards — Projects Board Seeder
Provisions a board of the given type (if missing) and fills it with sample
quality records through BoardSync, exactly as the board UI would.
Used for development and demo environments.

Usage:
    python scripts/seed_projects_board.py
    python scripts/seed_projects_board.py --api-url http://localhost:8000 --board-type projects
"""

import os
import asyncio
import argparse
import logging
from datetime import date

import httpx

from models import TaskPriority
from sync.board_sync import BoardSync
from sync.errors import NotFound
from sync.persistence import BOARDS_API_TIMEOUT, BOARDS_API_URL, HttpPersistenceService

logger = logging.getLogger("qms-boards.seed")


# ── Sample records ──────────────────────────────────────────

SAMPLE_TASKS = [
    {
        "column": 0,
        "title": "CATALOGO PERFILERIA 22/06/2022",
        "priority": TaskPriority.CRITICA,
        "description": "ADJUNTO CATALOGO DE PERFILERIA COMPARTIDO POR DISEÑO PARA VALIDACIÓN DE ESPESORES.",
        "due_date": date(2024, 8, 10),
        "labels": ["CALIDAD"],
        "assignees": [("u1", "JP"), ("u4", "JM")],
        "attachments": [("CATALOGO PERFILERIA.PDF", "https://files.local/catalogo-perfileria.pdf", "application/pdf", 1024)],
        "comments": [("Edwin Bedoya", "@board favor revisar las nuevas cotas de pintura")],
        "checklist": [("Verificar espesor pintura", True), ("Validar con ingeniería", False)],
    },
    {
        "column": 0,
        "title": "PLANOS FACHADA TORRE A",
        "priority": TaskPriority.ALTA,
        "description": "Revision final de despieces antes del envío a planta 2.",
        "due_date": date(2024, 8, 12),
        "labels": ["PLANTA"],
        "assignees": [("u2", "MR")],
    },
    {
        "column": 1,
        "title": "FALLO SOFTWARE ETIQUETADO L4.",
        "priority": TaskPriority.MEDIA,
        "description": "Investigando logs de sistema para detectar por qué se pierden las órdenes de producción.",
        "due_date": date(2024, 8, 5),
        "labels": ["URGENTE"],
        "assignees": [("u3", "CR")],
    },
]


async def provision_board(client: httpx.AsyncClient, board_type: str, name: str):
    resp = await client.post("/api/v1/boards", json={"type": board_type, "name": name})
    resp.raise_for_status()
    logger.info(f"Provisioned board {resp.json()['id']} ({board_type})")


async def seed(args) -> dict:
    counts = {"tasks": 0, "checklist": 0, "comments": 0, "labels": 0, "assignees": 0, "attachments": 0}

    async with httpx.AsyncClient(base_url=args.api_url, timeout=args.timeout) as client:
        board_sync = BoardSync(HttpPersistenceService(client), board_type=args.board_type)
        try:
            await board_sync.load()
        except NotFound:
            await provision_board(client, args.board_type, args.name)
            await board_sync.load()

        columns = board_sync.columns
        for sample in SAMPLE_TASKS:
            column = columns[min(sample["column"], len(columns) - 1)]
            task = await board_sync.create_task(
                sample["title"], sample["priority"],
                description=sample["description"], due_date=sample["due_date"],
                column_id=column.id,
            )
            if task is None:
                continue
            counts["tasks"] += 1

            for label in sample.get("labels", []):
                if await board_sync.toggle_label(task.id, label):
                    counts["labels"] += 1
            for user_id, initials in sample.get("assignees", []):
                if await board_sync.toggle_assignee(task.id, user_id, initials):
                    counts["assignees"] += 1
            for text, completed in sample.get("checklist", []):
                item = await board_sync.add_checklist_item(task.id, text)
                if item is None:
                    continue
                counts["checklist"] += 1
                if completed:
                    await board_sync.toggle_checklist_item(task.id, item.id)
            for author, text in sample.get("comments", []):
                if await board_sync.post_comment(task.id, text, author=author):
                    counts["comments"] += 1
            for name, url, content_type, size in sample.get("attachments", []):
                if await board_sync.add_attachment(task.id, name, url, content_type, size):
                    counts["attachments"] += 1

    return counts


# ── CLI ─────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="QMS Boards projects board seeder")
    parser.add_argument("--api-url", type=str, default=BOARDS_API_URL, help="Board API base URL")
    parser.add_argument("--board-type", type=str, default=os.getenv("BOARD_TYPE", "projects"), help="Board type tag")
    parser.add_argument("--name", type=str, default="Proyectos", help="Board name if it has to be provisioned")
    parser.add_argument("--timeout", type=float, default=BOARDS_API_TIMEOUT, help="HTTP timeout in seconds")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
    )

    counts = asyncio.run(seed(args))

    print(f"✅ Board '{args.board_type}' seeded at {args.api_url}")
    print(f"   Tasks: {counts['tasks']}")
    print(f"   Checklist Items: {counts['checklist']}")
    print(f"   Comments: {counts['comments']}")
    print(f"   Labels: {counts['labels']}")
    print(f"   Assignees: {counts['assignees']}")
    print(f"   Attachments: {counts['attachments']}")


if __name__ == "__main__":
    main()
