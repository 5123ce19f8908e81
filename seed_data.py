#!/usr/bin/env python
"""Create the tables and load a few demo users and tasks.

Safe to run more than once: users that already exist are reused and tasks
are only added to an empty board.
"""
import logging
from datetime import date, timedelta

from taskboard import config
from taskboard.database import Database
from taskboard.logging_setup import setup_logging
from taskboard.store import TaskQueryOptions, TaskStore, UserStore

logger = logging.getLogger("seed_data")

DEMO_USERS = [
    {"username": "alice", "email": "alice@taskboard.dev", "full_name": "Alice Anders"},
    {"username": "bob", "email": "bob@taskboard.dev", "full_name": "Bob Brooks"},
]


def seed(database: Database) -> None:
    database.create_tables()
    users = UserStore(database)
    tasks = TaskStore(database)

    ids = {}
    for data in DEMO_USERS:
        user = users.get_by_username(data["username"]) or users.create(data)
        ids[user.username] = user.id

    if tasks.list(TaskQueryOptions(limit=1)):
        logger.info("Board already has tasks, skipping task seed")
        return

    today = date.today()
    demo_tasks = [
        {"title": "Write API docs", "priority": "high", "assigned_to": ids["alice"], "due_date": today + timedelta(days=3)},
        {"title": "Set up CI", "status": "in-progress", "assigned_to": ids["bob"]},
        {"title": "Design kanban columns", "status": "done", "priority": "low"},
        {"title": "Triage bug reports", "description": "Go through the inbox"},
    ]
    for data in demo_tasks:
        tasks.create(data)
    logger.info("Seeded %d users and %d tasks", len(ids), len(demo_tasks))


if __name__ == "__main__":
    setup_logging(config.LOG_LEVEL, config.LOG_FILE)
    db = Database()
    try:
        seed(db)
    finally:
        db.dispose()
