from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlalchemy import text
from sqlmodel import SQLModel, Field, Session, create_engine, select

from worktimer import config
from worktimer.domain import WorkDay, WorkDayDate, WorkSession

logger = logging.getLogger(__name__)


# =========================
# Interfaces
# =========================
class WorkDayRepository(ABC):
    """Persistence contract for work days. Implementations must round-trip
    ``WorkDay.to_data()`` / ``WorkDay.from_data()`` without loss."""

    @abstractmethod
    def save(self, work_day: WorkDay) -> None:
        """Insert or replace the work day stored for ``work_day.date``."""
        ...

    @abstractmethod
    def find_by_date(self, work_date: WorkDayDate) -> WorkDay | None:
        """Return the work day for a date, or None if not found."""
        ...

    @abstractmethod
    def find_all(self) -> List[WorkDay]:
        """Return all work days, newest first."""
        ...

    @abstractmethod
    def delete(self, work_date: WorkDayDate) -> None:
        ...

    @abstractmethod
    def exists(self, work_date: WorkDayDate) -> bool:
        ...


class WorkSessionRepository(ABC):
    """Persistence contract for individual work sessions."""

    @abstractmethod
    def save(self, session: WorkSession) -> None:
        ...

    @abstractmethod
    def find_by_id(self, session_id: str) -> WorkSession | None:
        ...

    @abstractmethod
    def find_by_date(self, work_date: WorkDayDate) -> List[WorkSession]:
        """Return the sessions of a day ordered by start time."""
        ...

    @abstractmethod
    def find_all(self) -> List[WorkSession]:
        ...

    @abstractmethod
    def delete(self, session_id: str) -> None:
        ...

    @abstractmethod
    def delete_by_date(self, work_date: WorkDayDate) -> None:
        ...


class InMemoryWorkDayRepository(WorkDayRepository):
    """Keeps serialized snapshots in a dict. Handy for tests and scripts."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    def save(self, work_day: WorkDay) -> None:
        self._data[work_day.date.to_iso_string()] = work_day.to_data()

    def find_by_date(self, work_date: WorkDayDate) -> WorkDay | None:
        data = self._data.get(work_date.to_iso_string())
        return WorkDay.from_data(data) if data is not None else None

    def find_all(self) -> List[WorkDay]:
        return [WorkDay.from_data(self._data[k]) for k in sorted(self._data, reverse=True)]

    def delete(self, work_date: WorkDayDate) -> None:
        self._data.pop(work_date.to_iso_string(), None)

    def exists(self, work_date: WorkDayDate) -> bool:
        return work_date.to_iso_string() in self._data


# =========================
# SQL tables
# =========================
class WorkDayDB(SQLModel, table=True):
    work_date: date = Field(primary_key=True)
    status: str
    pause_deduction_applied: bool = False


class WorkSessionDB(SQLModel, table=True):
    id: str = Field(primary_key=True)
    # owning aggregate; None for sessions stored on their own
    work_day: date | None = Field(default=None, index=True)
    work_date: date = Field(index=True)
    # instants are kept as ISO strings so offsets survive sqlite
    start_time: str
    end_time: str | None = None
    duration_ms: int = 0
    position: int = 0
    is_current: bool = False


def _session_to_row(s: WorkSession, work_day: date | None, position: int, is_current: bool) -> WorkSessionDB:
    data = s.to_data()
    return WorkSessionDB(
        id=data["id"],
        work_day=work_day,
        work_date=s.work_date.value,
        start_time=data["startTime"],
        end_time=data["endTime"],
        duration_ms=data["duration"],
        position=position,
        is_current=is_current,
    )


def _row_to_data(r: WorkSessionDB) -> dict[str, Any]:
    return {
        "id": r.id,
        "startTime": r.start_time,
        "endTime": r.end_time,
        "duration": r.duration_ms,
        "date": r.work_date.isoformat(),
    }


def build_engine(db_url: str, echo: bool = False):
    is_sqlite = db_url.startswith("sqlite")
    kwargs = {
        "echo": echo,
        "pool_pre_ping": True,
        "future": True,
        "connect_args": {},
    }
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        # Serverless PG (Neon/Supabase): no local pool, bounded connect time
        kwargs["poolclass"] = NullPool
        kwargs["connect_args"] = {"connect_timeout": 10}
        if "sslmode=" not in db_url:
            db_url += ("&" if "?" in db_url else "?") + "sslmode=require"
    return create_engine(db_url, **kwargs)


class _SQLRepository:
    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = build_engine(url, echo=echo)

        # Postgres must be reachable (fail fast)
        if not url.startswith("sqlite"):
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("select 1"))
            except SQLAlchemyError as e:
                raise RuntimeError(f"Could not connect to Postgres: {e}") from e

        SQLModel.metadata.create_all(self.engine)


class SQLWorkDayRepository(_SQLRepository, WorkDayRepository):
    """Work days and their sessions in a SQL database (sqlite or Postgres)."""

    def save(self, work_day: WorkDay) -> None:
        key = work_day.date.value
        rows = [_session_to_row(s, key, i, False) for i, s in enumerate(work_day.sessions)]
        if work_day.current_session is not None:
            rows.append(_session_to_row(work_day.current_session, key, len(rows), True))
        kept = {r.id for r in rows}

        with Session(self.engine) as session:
            session.merge(WorkDayDB(
                work_date=key,
                status=work_day.status.value,
                pause_deduction_applied=work_day.pause_deduction_applied,
            ))
            for r in rows:
                session.merge(r)
            for old in session.exec(select(WorkSessionDB).where(WorkSessionDB.work_day == key)).all():
                if old.id not in kept:
                    session.delete(old)
            session.commit()
        logger.info("Saved work day %s (%s, %d sessions)", work_day.date, work_day.status.value, work_day.session_count)

    def find_by_date(self, work_date: WorkDayDate) -> WorkDay | None:
        with Session(self.engine) as session:
            row = session.get(WorkDayDB, work_date.value)
            if row is None:
                return None
            return self._to_domain(session, row)

    def find_all(self) -> List[WorkDay]:
        with Session(self.engine) as session:
            rows = session.exec(select(WorkDayDB).order_by(WorkDayDB.work_date.desc())).all()
            return [self._to_domain(session, r) for r in rows]

    def delete(self, work_date: WorkDayDate) -> None:
        with Session(self.engine) as session:
            for s in session.exec(select(WorkSessionDB).where(WorkSessionDB.work_day == work_date.value)).all():
                session.delete(s)
            row = session.get(WorkDayDB, work_date.value)
            if row is not None:
                session.delete(row)
            session.commit()
        logger.info("Deleted work day %s", work_date)

    def exists(self, work_date: WorkDayDate) -> bool:
        with Session(self.engine) as session:
            return session.get(WorkDayDB, work_date.value) is not None

    @staticmethod
    def _to_domain(session: Session, row: WorkDayDB) -> WorkDay:
        session_rows = session.exec(
            select(WorkSessionDB)
            .where(WorkSessionDB.work_day == row.work_date)
            .order_by(WorkSessionDB.position)
        ).all()
        current = next((r for r in session_rows if r.is_current), None)
        return WorkDay.from_data({
            "date": row.work_date.isoformat(),
            "sessions": [_row_to_data(r) for r in session_rows if not r.is_current],
            "currentSession": _row_to_data(current) if current else None,
            "status": row.status,
            "pauseDeductionApplied": row.pause_deduction_applied,
        })


class SQLWorkSessionRepository(_SQLRepository, WorkSessionRepository):
    """CRUD for individual sessions, sharing the table used by work days."""

    def save(self, s: WorkSession) -> None:
        with Session(self.engine) as session:
            existing = session.get(WorkSessionDB, s.id)
            if existing is None:
                session.add(_session_to_row(s, None, 0, s.is_running))
            else:
                data = s.to_data()
                existing.start_time = data["startTime"]
                existing.end_time = data["endTime"]
                existing.duration_ms = data["duration"]
                existing.work_date = s.work_date.value
                existing.is_current = s.is_running
                session.add(existing)
            session.commit()
        logger.info("Saved work session %s", s.id)

    def find_by_id(self, session_id: str) -> WorkSession | None:
        with Session(self.engine) as session:
            row = session.get(WorkSessionDB, session_id)
            return WorkSession.from_data(_row_to_data(row)) if row else None

    def find_by_date(self, work_date: WorkDayDate) -> List[WorkSession]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(WorkSessionDB).where(WorkSessionDB.work_date == work_date.value)
            ).all()
            sessions = [WorkSession.from_data(_row_to_data(r)) for r in rows]
        return sorted(sessions, key=lambda s: s.start_time)

    def find_all(self) -> List[WorkSession]:
        with Session(self.engine) as session:
            rows = session.exec(select(WorkSessionDB)).all()
            sessions = [WorkSession.from_data(_row_to_data(r)) for r in rows]
        return sorted(sessions, key=lambda s: s.start_time)

    def delete(self, session_id: str) -> None:
        with Session(self.engine) as session:
            row = session.get(WorkSessionDB, session_id)
            if row is not None:
                session.delete(row)
                session.commit()

    def delete_by_date(self, work_date: WorkDayDate) -> None:
        with Session(self.engine) as session:
            for row in session.exec(select(WorkSessionDB).where(WorkSessionDB.work_date == work_date.value)).all():
                session.delete(row)
            session.commit()
        logger.info("Deleted work sessions of %s", work_date)


def default_repository(echo: bool = False) -> SQLWorkDayRepository:
    """Work day repository on the configured database (see config.database_url)."""
    url = config.database_url()
    logger.info("Opening work day store at %s", url.split("@")[-1])
    return SQLWorkDayRepository(url, echo=echo)


__all__ = [
    "InMemoryWorkDayRepository",
    "SQLWorkDayRepository",
    "SQLWorkSessionRepository",
    "WorkDayDB",
    "WorkDayRepository",
    "WorkSessionDB",
    "WorkSessionRepository",
    "build_engine",
    "default_repository",
]
