# repository.py
from __future__ import annotations

import json
import logging
from typing import Iterable, List
from datetime import date, datetime

from sqlalchemy.pool import NullPool
from sqlalchemy import text
from sqlmodel import SQLModel, Field, Session, create_engine, select

from config import load_settings
from domain import Preferences, Shift, SortOrder

logger = logging.getLogger(__name__)


class RepositoryError(RuntimeError):
    """Base error for store operations."""


class ShiftNotFoundError(RepositoryError):
    """Raised when a shift id does not exist."""


class ShiftDB(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    shift_date: date | None = Field(default=None, index=True)
    start_time: datetime | None = None
    end_time: datetime | None = None
    notes: str = ""
    name: str | None = None
    address: str | None = None


class PreferenceDB(SQLModel, table=True):
    key: str = Field(primary_key=True)
    value: str


def build_engine(db_url: str, echo: bool = False):
    is_sqlite = db_url.startswith("sqlite")
    kwargs = {
        "echo": echo,
        "pool_pre_ping": True,
        "connect_args": {},
    }
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        # Serverless PG: no local pool, bounded connect time
        kwargs["poolclass"] = NullPool
        kwargs["connect_args"] = {"connect_timeout": 10}
        if "sslmode=" not in db_url:
            db_url += ("&" if "?" in db_url else "?") + "sslmode=require"
    return create_engine(db_url, **kwargs)


def connect(url: str, echo: bool = False):
    """Builds the engine and creates the tables. Server databases must be reachable."""
    engine = build_engine(url, echo=echo)
    if not url.startswith("sqlite"):
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
        except Exception as e:
            raise RuntimeError(f"Could not connect to the database: {e}") from e
    SQLModel.metadata.create_all(engine)
    return engine


def _to_domain(r: ShiftDB) -> Shift:
    return Shift(
        id=r.id,
        date=r.shift_date,
        start_time=r.start_time,
        end_time=r.end_time,
        notes=r.notes or "",
        name=r.name,
        address=r.address,
    )


class ShiftRepository:
    """CRUD for shifts. Every read returns a fresh snapshot; the URL defaults to config.load_settings()."""
    def __init__(self, url: str | None = None, echo: bool = False, engine=None):
        self.engine = engine if engine is not None else connect(url or load_settings().database_url, echo=echo)

    def add(self, s: Shift) -> Shift:
        with Session(self.engine) as session:
            row = ShiftDB(
                shift_date=s.date,
                start_time=s.start_time,
                end_time=s.end_time,
                notes=s.notes or "",
                name=s.name,
                address=s.address,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            logger.info("Added shift %s for %s", row.id, row.shift_date)
            return _to_domain(row)

    def get(self, shift_id: int) -> Shift | None:
        with Session(self.engine) as session:
            row = session.get(ShiftDB, shift_id)
            return _to_domain(row) if row else None

    def update(self, s: Shift) -> Shift:
        with Session(self.engine) as session:
            row = session.get(ShiftDB, s.id) if s.id is not None else None
            if row is None:
                logger.warning("Update of unknown shift %s", s.id)
                raise ShiftNotFoundError(f"Shift {s.id} not found")
            row.shift_date = s.date
            row.start_time = s.start_time
            row.end_time = s.end_time
            row.notes = s.notes or ""
            row.name = s.name
            row.address = s.address
            session.add(row)
            session.commit()
            session.refresh(row)
            logger.info("Updated shift %s", row.id)
            return _to_domain(row)

    def delete(self, shift_id: int) -> None:
        with Session(self.engine) as session:
            row = session.get(ShiftDB, shift_id)
            if row is None:
                logger.warning("Delete of unknown shift %s", shift_id)
                raise ShiftNotFoundError(f"Shift {shift_id} not found")
            session.delete(row)
            session.commit()
            logger.info("Deleted shift %s", shift_id)

    def delete_many(self, shift_ids: Iterable[int]) -> int:
        """Deletes a selection of shifts; unknown ids are skipped. Returns the count deleted."""
        ids = set(shift_ids)
        if not ids:
            return 0
        with Session(self.engine) as session:
            rows = session.exec(select(ShiftDB).where(ShiftDB.id.in_(ids))).all()
            for row in rows:
                session.delete(row)
            session.commit()
        logger.info("Deleted %d of %d selected shifts", len(rows), len(ids))
        return len(rows)

    def list_all(self, order: SortOrder = SortOrder.ASCENDING) -> List[Shift]:
        if order == SortOrder.DESCENDING:
            ordering = (ShiftDB.shift_date.desc(), ShiftDB.start_time.desc(), ShiftDB.id.desc())
        else:
            ordering = (ShiftDB.shift_date, ShiftDB.start_time, ShiftDB.id)
        with Session(self.engine) as session:
            rows = session.exec(select(ShiftDB).order_by(*ordering)).all()
            return [_to_domain(r) for r in rows]

    def list_between(self, d1: date, d2: date) -> List[Shift]:
        """Shifts dated within [d1, d2], ascending."""
        with Session(self.engine) as session:
            rows = session.exec(
                select(ShiftDB)
                .where(ShiftDB.shift_date >= d1, ShiftDB.shift_date <= d2)
                .order_by(ShiftDB.shift_date, ShiftDB.start_time, ShiftDB.id)
            ).all()
            return [_to_domain(r) for r in rows]


class PreferencesRepository:
    """Key-value settings store. Last write wins."""
    def __init__(self, url: str | None = None, echo: bool = False, engine=None):
        self.engine = engine if engine is not None else connect(url or load_settings().database_url, echo=echo)

    def load(self) -> Preferences:
        with Session(self.engine) as session:
            rows = session.exec(select(PreferenceDB)).all()
        data = {}
        for r in rows:
            try:
                data[r.key] = json.loads(r.value)
            except json.JSONDecodeError:
                logger.warning("Ignoring unreadable preference %r", r.key)
        return Preferences.from_mapping(data)

    def save(self, preferences: Preferences) -> None:
        with Session(self.engine) as session:
            for key, value in preferences.to_mapping().items():
                row = session.get(PreferenceDB, key)
                if row is None:
                    row = PreferenceDB(key=key, value=json.dumps(value))
                else:
                    row.value = json.dumps(value)
                session.add(row)
            session.commit()
        logger.info("Saved preferences")

    def reset(self) -> Preferences:
        defaults = Preferences()
        self.save(defaults)
        return defaults


__all__ = [
    "ShiftDB",
    "PreferenceDB",
    "ShiftRepository",
    "PreferencesRepository",
    "RepositoryError",
    "ShiftNotFoundError",
    "build_engine",
    "connect",
]
