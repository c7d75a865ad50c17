# backend/clinic_booking/data_access.py
"""
AdminDataAccess: the privileged persistence capability.

Built once per process from a session factory and handed to the services
that need it. Nothing in the core reaches for a global engine or session.
"""

from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy.orm import Session, sessionmaker


class AdminDataAccess:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read session. Closed (and rolled back if left open) on exit."""
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session committed on success, rolled back on any exception."""
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except BaseException:
            db.rollback()
            raise
        finally:
            db.close()


# Dependencies for FastAPI


def get_data_access(request: Request) -> AdminDataAccess:
    return request.app.state.data_access
