#!/usr/bin/env python3
"""
Taskboard - demo seed.

Creates four users (one per role), two sprints and a handful of tasks
spread across the board, with a few status moves so the history ledger
has something to show. Prints an access token per user.

Usage:
    python scripts/seed_demo.py              # add to the current DB
    python scripts/seed_demo.py --reset      # drop + recreate tables first
"""

import argparse
import sys

sys.path.insert(0, ".")

from taskboard import create_app
from taskboard.models import db
from taskboard.services.jwt_service import generate_access_token
from taskboard.services.sprint_service import create_sprint
from taskboard.services.task_service import add_attachment, create_task
from taskboard.services.transition_engine import transition_status
from taskboard.services.user_service import create_user

USERS = [
    ("alice", "alice@example.com", "Alice Admin", "ADMIN"),
    ("mike", "mike@example.com", "Mike Manager", "MANAGER"),
    ("dana", "dana@example.com", "Dana Developer", "DEVELOPER"),
    ("rick", "rick@example.com", "Rick Reporter", "REPORTER"),
]

SPRINTS = [
    {"name": "Sprint 1", "start_date": "2024-01-01", "end_date": "2024-01-14", "status": "COMPLETED"},
    {"name": "Sprint 2", "start_date": "2024-01-15", "end_date": "2024-01-28", "status": "ACTIVE"},
]

# (title, priority, assignee, reporter, sprint index or None, status path)
TASKS = [
    ("Login button does nothing", "URGENT", "dana", "rick", 0, ["IN_PROGRESS", "REVIEW", "DONE"]),
    ("Password reset email is blank", "HIGH", "dana", "rick", 1, ["IN_PROGRESS"]),
    ("Add CSV export to reports", "MEDIUM", "mike", "alice", 1, ["IN_PROGRESS", "REVIEW"]),
    ("Dark mode contrast issues", "LOW", "dana", "mike", 1, []),
    ("Upgrade database driver", "MEDIUM", "mike", "alice", None, []),
]


def seed():
    users = {}
    for username, email, name, role in USERS:
        users[username] = create_user(username, email, name, role=role)

    sprints = [create_sprint(data, users["mike"].id) for data in SPRINTS]

    for title, priority, assignee, reporter, sprint_idx, path in TASKS:
        task = create_task({
            "title": title,
            "priority": priority,
            "assignee_id": users[assignee].id,
            "reporter_id": users[reporter].id,
            "sprint_id": sprints[sprint_idx].id if sprint_idx is not None else None,
        }, users[reporter].id)
        for status in path:
            transition_status(task.id, status, users[assignee].id)
        if priority == "URGENT":
            add_attachment(task.id, "screenshot.png", "uploads/screenshot.png", users[reporter].id)

    db.session.commit()
    return users


def main():
    parser = argparse.ArgumentParser(description="Seed Taskboard demo data")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if args.reset:
            print("Resetting database (drop_all + create_all)...")
            db.drop_all()
            db.create_all()

        users = seed()
        print(f"Seeded {len(USERS)} users, {len(SPRINTS)} sprints, {len(TASKS)} tasks.\n")
        for username, user in users.items():
            print(f"{username:<6} {user.role:<10} {generate_access_token(user.id, user.role)}")


if __name__ == "__main__":
    main()
