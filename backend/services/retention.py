import asyncio
import logging

from services import files, tasks

logger = logging.getLogger(__name__)


def purge_all(session_factory) -> dict:
    with session_factory() as db:
        return {
            "tasks": tasks.purge_completed_tasks(db),
            "files": files.purge_expired_files(db),
        }


async def retention_loop(session_factory, interval: float):
    """Runs for the lifetime of the app; cancelled on shutdown."""
    while True:
        try:
            purged = await asyncio.to_thread(purge_all, session_factory)
            if any(purged.values()):
                logger.info("[Retention] Purged %s", purged)
        except Exception:
            logger.exception("[Retention] Purge pass failed")
        await asyncio.sleep(interval)
