"""Database sessions for Stride maintenance DAGs.

DAG tasks call backend services (SessionManager) with a session from here,
so the engine mirrors the backend's PostgreSQL settings:
- small pool per worker (pool_size=2, max_overflow=3)
- READ COMMITTED, which the conditional session revokes rely on
- 10s lock timeout so a stuck sweep fails instead of blocking logins
"""

import logging
import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

# Load environment variables from backend .env
load_dotenv("/opt/airflow/backend/.env")

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL not found in environment variables")

# Airflow containers reach the backend database through the Docker host
DATABASE_URL = DATABASE_URL.replace("postgres:5432", "host.docker.internal:5432")

engine = create_engine(
    DATABASE_URL,
    pool_size=2,
    max_overflow=3,
    pool_recycle=1800,
    pool_pre_ping=True,
    isolation_level="READ COMMITTED",
    connect_args={"options": "-c lock_timeout=10000"},
)

SessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)
