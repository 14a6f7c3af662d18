"""
Local SQL mirror of the record store's tables.

Uses SQLAlchemy; column names match the hosted store (titled names with
spaces) so SqlQueryService reads a local SQLite copy exactly like the
real thing.
"""

from datetime import datetime, timezone
from pathlib import Path
from sqlalchemy import create_engine, Column, Integer, String, Text, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DEFAULT_CANDIDATE_TABLE, DEFAULT_QUEUE_TABLE, DEFAULT_TRACKER_TABLE

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class ScreeningTrackerRow(Base):
    """Completed or in-progress screening outcome."""

    __tablename__ = DEFAULT_TRACKER_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    application_id = Column("Application ID", String, nullable=False, index=True)
    job_title = Column("Job Title", String)
    role_code = Column("Role Code", String)
    candidate_name = Column("Candidate Name", String)
    screening_outcome = Column("Screening Outcome", String)
    screening_summary = Column("Screening Summary", Text)
    call_status = Column("Call Status", String)
    call_score = Column("Call Score", String)
    similarity_score = Column("Similarity Score", String)
    final_score = Column("Final Score", String)
    conversation_id = Column("Conversation ID", String)
    recording_link = Column("Recording Link", String)
    notice_period = Column("Notice Period", String)
    current_ctc = Column("Current CTC", String)
    expected_ctc = Column("Expected CTC", String)
    other_job_offers = Column("Other Job Offers", String)
    current_location = Column("Current Location", String)
    call_route = Column("Call Route", String)
    similarity_summary = Column("Similarity Summary", Text)
    rejection_reason = Column("Rejection Reason", Text)


class ScreeningQueueRow(Base):
    """Processing status of one application in the screening batch queue."""

    __tablename__ = DEFAULT_QUEUE_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    application_id = Column("Application ID", String, nullable=False, index=True)
    status = Column("Status", String, nullable=False)  # Waiting, Processing, Completed


class CandidateRow(Base):
    """Applicant-submitted data."""

    __tablename__ = DEFAULT_CANDIDATE_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    application_id = Column("Application ID", String, index=True)
    role_code = Column("Role Code", String)
    candidate_name = Column("Candidate Name", String)
    candidate_email = Column("Candidate Email ID", String)
    candidate_contact_number = Column("Candidate Contact Number", String)
    notice_period = Column("Notice Period", String)
    current_ctc = Column("Current CTC", String)
    salary_expectation = Column("Candidate Salary Expectation", String)
    current_location = Column("Current Location", String)
    resume_link = Column("Candidate Resume", String)
    job_applied = Column("Job Applied", String)
    profile_status = Column("Profile Status", String)


def database_url(db_path: Path) -> str:
    return f"sqlite:///{db_path}"


def init_database(db_path: Path) -> None:
    """
    Initialize database and create the three tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(database_url(db_path))
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = create_engine(database_url(db_path))
    Session = sessionmaker(bind=engine)
    return Session()
