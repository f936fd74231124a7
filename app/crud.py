# app/crud.py
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import timezone
from typing import List

from .models import SessionRecord
from engine.models import PastSession


class SessionAlreadyExists(Exception):
    pass


def _as_utc(dt):
    # SQLite hands back naive datetimes even for timezone-aware columns
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def list_sessions(db: Session, user_id: str) -> List[PastSession]:
    """Returns every past session owned by user_id, newest first."""
    rows = (
        db.query(SessionRecord)
        .filter(SessionRecord.user_id == user_id)
        .order_by(SessionRecord.date.desc())
        .all()
    )
    return [
        PastSession(
            id=row.id,
            date=_as_utc(row.date),
            config=row.config,
            evaluation=row.evaluation,
        )
        for row in rows
    ]


def append_session(db: Session, user_id: str, session: PastSession):
    """
    Inserts one past session for user_id. Sessions are append-only: an existing id
    is never overwritten and raises SessionAlreadyExists instead.
    """
    record = SessionRecord(
        id=session.id,
        user_id=user_id,
        date=_as_utc(session.date),
        config=session.config.model_dump(mode="json", by_alias=True),
        evaluation=session.evaluation.model_dump(mode="json", by_alias=True),
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise SessionAlreadyExists(session.id) from e
    except Exception:
        db.rollback()
        raise
    print(f"CRUD: Appended session {session.id} for user {user_id}")
