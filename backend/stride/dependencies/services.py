"""Service factories for request handlers."""

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session, sessionmaker

from stride.database import SessionLocal, get_db
from stride.services.identity_provider import IdentityProvider
from stride.services.session_manager import SessionManager
from stride.services.two_factor import TwoFactorOrchestrator


def get_session_factory() -> sessionmaker:
    """Session factory for work that outlives the request (location backfill)."""
    return SessionLocal


def get_session_manager(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> SessionManager:
    return SessionManager(
        db, schedule=background_tasks.add_task, session_factory=session_factory
    )


def get_two_factor(db: Session = Depends(get_db)) -> TwoFactorOrchestrator:
    return TwoFactorOrchestrator(db)


def get_identity_provider(
    db: Session = Depends(get_db),
    session_manager: SessionManager = Depends(get_session_manager),
) -> IdentityProvider:
    return IdentityProvider(db, listeners=[session_manager])
