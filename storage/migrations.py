"""Ad-hoc database migrations for Taskboard."""

from __future__ import annotations

from sqlalchemy import text


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def ensure_task_columns(conn) -> None:
    # columns added after the first schema; older databases miss them
    columns = {
        "completed_at": "DATETIME",
        "tags_json": "TEXT NOT NULL DEFAULT '[]'",
        "estimated_hours": "FLOAT",
    }
    for name, ddl_type in columns.items():
        if not _column_exists(conn, "tasks", name):
            conn.execute(text(f"ALTER TABLE tasks ADD COLUMN {name} {ddl_type}"))

    # completedAt must only be present on completed tasks
    conn.execute(
        text(
            """
            UPDATE tasks
            SET completed_at = NULL
            WHERE status != 'completed' AND completed_at IS NOT NULL
            """
        )
    )
    conn.execute(
        text(
            """
            UPDATE tasks
            SET completed_at = updated_at
            WHERE status = 'completed' AND completed_at IS NULL
            """
        )
    )


def ensure_indexes(conn) -> None:
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_tasks_owner_status ON tasks(owner_id, status)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_tasks_owner_category ON tasks(owner_id, category_id)"))


def run_all(engine) -> None:
    if engine.dialect.name != "sqlite":
        return
    with engine.begin() as conn:
        ensure_task_columns(conn)
        ensure_indexes(conn)


__all__ = ["run_all"]
