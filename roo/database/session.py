# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Database session management.

This module provides database session management utilities including
the get_db dependency for FastAPI and session factory.
"""
from typing import Iterator

from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session

from roo.config import settings
from roo.errors import ConflictError
from roo.logging_utils import log_application_event

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_recycle=3600,  # Recycle connections after 1 hour
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Dependency for getting database session.
    
    Yields:
        Session: Database session, closed when the request finishes
        
    Example:
        @router.get("/roles/{role_id}")
        def read_role(role_id: str, db: Session = Depends(get_db)):
            return db.get(Role, role_id)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_conflict(db: Session) -> None:
    """Commit the request transaction, mapping constraint violations to 409.
    
    Args:
        db: Database session
        
    Raises:
        ConflictError: If the commit violates a unique or foreign key constraint
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        log_application_event("commit_conflict", reason=str(e.orig))
        raise ConflictError() from e


def init_db() -> None:
    """Initialize database tables if they don't exist.
    
    Assumptions:
    - Safe to call multiple times
    - Does not drop or modify existing tables
    """
    from roo.database.schema import Base  # Import here to avoid circular imports
    
    existing_tables = inspect(engine).get_table_names()
    
    if existing_tables:
        log_application_event("database_ready", tables=len(existing_tables))
    else:
        Base.metadata.create_all(bind=engine)
        log_application_event("database_initialized", url=engine.url.render_as_string(hide_password=True))
