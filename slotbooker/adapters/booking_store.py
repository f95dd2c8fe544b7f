"""
Relational store of confirmed bookings using SQLAlchemy.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

import pendulum
from pendulum import DateTime
from sqlalchemy import Column, DateTime as SQLDateTime, Integer, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..domain.exceptions import BookingError, BookingNotFoundError
from ..domain.models import BookingRecord

logger = logging.getLogger(__name__)

Base = declarative_base()


class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, unique=True, index=True, nullable=False)
    subject = Column(String, nullable=True)
    project_manager_id = Column(String, nullable=False)
    project_manager_email = Column(String, nullable=True)
    project_manager_name = Column(String, nullable=True)
    student_id = Column(String, nullable=False)
    student_name = Column(String, nullable=False)
    student_email = Column(String, nullable=False)
    team_id = Column(String, index=True, nullable=False)
    # Naive UTC
    start_time = Column(SQLDateTime, index=True, nullable=False)
    end_time = Column(SQLDateTime, nullable=False)
    time_zone = Column(String, nullable=True)
    join_url = Column(String, nullable=True)


def _to_db(dt: DateTime):
    return dt.in_timezone("UTC").naive()


def _from_db(value) -> DateTime:
    # value may be the naive pendulum DateTime assigned before a flush
    return pendulum.datetime(
        value.year, value.month, value.day,
        value.hour, value.minute, value.second, value.microsecond,
        tz="UTC",
    )


class BookingStore:
    """
    Reads and writes BookingRecord rows.

    Times go in as timezone-aware DateTimes, are stored as naive UTC and come
    back out as UTC DateTimes.
    """

    def __init__(self, database_url: str = "sqlite:///slotbooker.db"):
        """
        Initialize the store and create the schema if needed.

        Args:
            database_url: SQLAlchemy URL; ``sqlite://`` gives an in-memory database
        """
        engine_kwargs = {}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(database_url, **engine_kwargs)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Booking store operation failed: %s", exc)
            raise BookingError(f"Booking store operation failed: {exc}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _to_record(row: BookingRow) -> BookingRecord:
        return BookingRecord(
            external_id=row.external_id,
            manager_id=row.project_manager_id,
            manager_email=row.project_manager_email or "",
            manager_name=row.project_manager_name or "",
            student_id=row.student_id,
            student_name=row.student_name,
            student_email=row.student_email,
            team_id=row.team_id,
            start=_from_db(row.start_time),
            end=_from_db(row.end_time),
            time_zone=row.time_zone or "",
            join_url=row.join_url or "",
            subject=row.subject or "",
        )

    def find_bookings(self, team_id: str, start: DateTime, end: DateTime) -> List[BookingRecord]:
        """
        Get a team's bookings lying completely inside [start, end].

        Returns:
            Bookings ordered by start time
        """
        query = (
            select(BookingRow)
            .where(
                BookingRow.team_id == team_id,
                BookingRow.start_time >= _to_db(start),
                BookingRow.end_time <= _to_db(end),
            )
            .order_by(BookingRow.start_time, BookingRow.id)
        )
        with self._session() as session:
            return [self._to_record(row) for row in session.scalars(query)]

    def get_booking(self, external_id: str) -> Optional[BookingRecord]:
        """Get a booking by its calendar event id, or None."""
        with self._session() as session:
            row = self._find_row(session, external_id)
            return self._to_record(row) if row else None

    def create_booking(self, record: BookingRecord) -> BookingRecord:
        """Persist a new booking."""
        with self._session() as session:
            session.add(
                BookingRow(
                    external_id=record.external_id,
                    subject=record.subject,
                    project_manager_id=record.manager_id,
                    project_manager_email=record.manager_email,
                    project_manager_name=record.manager_name,
                    student_id=record.student_id,
                    student_name=record.student_name,
                    student_email=record.student_email,
                    team_id=record.team_id,
                    start_time=_to_db(record.start),
                    end_time=_to_db(record.end),
                    time_zone=record.time_zone,
                    join_url=record.join_url,
                )
            )
        logger.info("Stored booking %s for team %s", record.external_id, record.team_id)
        return record

    def update_booking_times(self, external_id: str, start: DateTime, end: DateTime) -> BookingRecord:
        """
        Move a booking.

        Raises:
            BookingNotFoundError: If no booking has this event id
        """
        with self._session() as session:
            row = self._find_row(session, external_id)
            if row is None:
                raise BookingNotFoundError(external_id)
            row.start_time = _to_db(start)
            row.end_time = _to_db(end)
            session.flush()
            return self._to_record(row)

    def delete_booking(self, external_id: str) -> BookingRecord:
        """
        Remove a booking and return what was removed.

        Raises:
            BookingNotFoundError: If no booking has this event id
        """
        with self._session() as session:
            row = self._find_row(session, external_id)
            if row is None:
                raise BookingNotFoundError(external_id)
            record = self._to_record(row)
            session.delete(row)
        logger.info("Deleted booking %s", external_id)
        return record

    @staticmethod
    def _find_row(session: Session, external_id: str) -> Optional[BookingRow]:
        return session.scalars(
            select(BookingRow).where(BookingRow.external_id == external_id)
        ).first()
