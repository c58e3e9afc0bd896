"""Document store schema management (code-first approach)."""

import logging

from paintcal.core.config import constants
from paintcal.core.db_client import get_connection


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = [
    constants.USERS_COLLECTION,
    constants.PENDING_USERS_COLLECTION,
    constants.PROJECTS_COLLECTION,
    constants.TASKS_COLLECTION,
    constants.TASK_TEMPLATES_COLLECTION,
    constants.NO_WORK_DAYS_COLLECTION,
]

# Expression indexes on the JSON fields the live queries filter and sort by
INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_users_user_type ON users (json_extract(data, '$.user_type'))",
    "CREATE INDEX IF NOT EXISTS idx_pending_users_email ON pending_users (json_extract(data, '$.email'))",
    "CREATE INDEX IF NOT EXISTS idx_projects_created_at ON projects (json_extract(data, '$.created_at'))",
    "CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks (json_extract(data, '$.project_id'))",
    "CREATE INDEX IF NOT EXISTS idx_tasks_start_date ON tasks (json_extract(data, '$.start_date'))",
    "CREATE INDEX IF NOT EXISTS idx_task_templates_name ON task_templates (json_extract(data, '$.name'))",
    "CREATE INDEX IF NOT EXISTS idx_no_work_days_date ON no_work_days (json_extract(data, '$.date'))",
]


def _table_ddl(collection: str) -> str:
    return (
        f"CREATE TABLE IF NOT EXISTS {collection} ("
        "id TEXT PRIMARY KEY, "
        "data TEXT NOT NULL DEFAULT '{}', "
        "created TEXT NOT NULL, "
        "updated TEXT NOT NULL)"
    )


async def init_db(*, db_path: str | None = None) -> None:
    """Create every collection table and index if missing."""
    conn = await get_connection(db_path=db_path)

    for collection in COLLECTIONS:
        await conn.execute(_table_ddl(collection))
    for index in INDEXES:
        await conn.execute(index)
    await conn.commit()

    logger.info("Schema initialized", extra={"collections": COLLECTIONS})
