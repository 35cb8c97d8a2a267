"""One-shot copy of locally stored records into the cloud store."""

import logging

from work_log.core.cloud import DATABASE_URL_ENV, CloudRecordStore
from work_log.core.errors import NotConfiguredError
from work_log.core.storage import LocalRecordStore

logger = logging.getLogger(__name__)


def migrate_local_data(local_store: LocalRecordStore, cloud_store: CloudRecordStore) -> int:
    """Upsert every local record into the cloud store.

    The local slot is read without seeding and left untouched. Records are
    sent in one batch keyed by id, so running this again overwrites rather
    than duplicates.

    Args:
        local_store: Source of records
        cloud_store: Open cloud store to copy into

    Returns:
        Number of records migrated

    Raises:
        NotConfiguredError: If the cloud store has no credentials
    """
    if not cloud_store.is_configured:
        raise NotConfiguredError(
            f"Cannot migrate: database URL is not set. Configure cloud.database_url or set {DATABASE_URL_ENV}."
        )

    logger.info(f"Starting migration from {local_store.slot_file}")

    records = local_store.read_slot()
    if not records:
        logger.info("No local records to migrate")
        return 0

    logger.info(f"Found {len(records)} records to migrate")
    count = cloud_store.save_many(records)

    logger.info(f"Migrated {count} records to table {cloud_store.table}")
    return count
