"""
Session Cleanup DAG

Deletes session records that were revoked longer ago than the retention
window, and sessions with no activity for the inactivity window. Replaces
the cron call to POST /api/sessions/cleanup.

Schedule: Daily at 4:00 AM UTC
"""

import logging
import sys
from datetime import datetime, timedelta

from airflow.sdk import dag, task
from shared_db import SessionLocal

logger = logging.getLogger(__name__)

default_args = {
    "owner": "stride",
    "depends_on_past": False,
    "email_on_failure": False,
    "email_on_retry": False,
    "retries": 1,
    "retry_delay": timedelta(minutes=5),
}


@dag(
    dag_id="session_cleanup",
    default_args=default_args,
    description="Daily purge of expired and long-inactive sessions",
    schedule="0 4 * * *",  # Daily at 4:00 AM UTC
    start_date=datetime(2026, 1, 1),
    catchup=False,
    tags=["maintenance", "cleanup", "sessions"],
)
def session_cleanup():
    """Delete expired session records."""

    @task(task_id="cleanup_expired_sessions")
    def cleanup_expired_sessions() -> dict[str, int]:
        """Run the same sweep the API exposes, through SessionManager."""
        if "/opt/airflow/backend" not in sys.path:
            sys.path.insert(0, "/opt/airflow/backend")
        from stride.services.session_manager import SessionManager

        session = SessionLocal()
        try:
            result = SessionManager(session, session_factory=SessionLocal).cleanup_expired_sessions()
            if not result.success:
                raise RuntimeError(f"Session cleanup failed: {result.message}")
            logger.info(f"Deleted {result.data['deleted_count']} expired session(s)")
            return result.data
        finally:
            session.close()

    cleanup_expired_sessions()


dag_instance = session_cleanup()
