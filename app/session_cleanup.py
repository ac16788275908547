"""
CLI entrypoint for the expired-session cleanup job. Run from cron, e.g.:

  python -m app.session_cleanup

Or hourly: 0 * * * * cd /path/to/inmotech && .venv/bin/python -m app.session_cleanup
"""

import logging
import sys
import time

from app.core.config import get_settings
from app.core.database import Database
from app.services.sessions import cleanup_expired_sessions

logging.Formatter.converter = time.gmtime
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Deactivate sessions whose expiry has passed."""
    settings = get_settings()
    database = Database(settings.DATABASE_URL)
    try:
        with database.session() as db:
            deactivated = cleanup_expired_sessions(db)
        logger.info("Session cleanup completed: sessions_deactivated=%s", deactivated)
        return 0
    except Exception as e:
        logger.exception("Session cleanup failed: %s", e)
        return 1
    finally:
        database.dispose()


if __name__ == "__main__":
    sys.exit(main())
