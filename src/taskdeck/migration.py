"""
One-off data moves between the local key-value store and a user's remote
document collections.
"""
from __future__ import annotations

import logging

from .backends import DocumentBackend, KeyValueBackend, decode_record, encode_record
from .exceptions import PersistenceError
from .models import TASKS_KEY

logger = logging.getLogger(__name__)


def has_local_data(local: KeyValueBackend) -> bool:
    """True when the local store holds tasks; an unreadable store counts as empty."""
    try:
        records = local.read(TASKS_KEY)
    except PersistenceError as e:
        logger.warning("Local store unreadable, nothing to migrate: %s", e)
        return False
    return bool(records)


# PUBLIC_INTERFACE
def migrate_local_to_remote(local: KeyValueBackend, documents: DocumentBackend, user_id: str) -> int:
    """
    Copy every locally stored task into the user's remote task collection,
    then clear the local copy.

    Task ids are kept, so running the migration twice does not duplicate
    tasks. The local copy is only cleared after every write succeeded.

    Returns:
        Number of tasks migrated.
    """
    records = local.read(TASKS_KEY) or []
    if not records:
        logger.info("No local tasks to migrate for %s", user_id)
        return 0

    logger.info("Migrating %d tasks to remote collection of %s", len(records), user_id)
    for record in records:
        task = decode_record(record)
        task.setdefault("status", "completed" if task.get("completed") else "pending")
        task.setdefault("category", None)
        task.setdefault("priority", None)
        documents.put_document(user_id, "tasks", task["id"], encode_record(task))

    local.write(TASKS_KEY, [])
    logger.info("Migration for %s completed; local tasks cleared", user_id)
    return len(records)

