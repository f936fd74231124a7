# app/sessions_api.py

import traceback
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from . import crud, models
from .db import get_db
from .dependencies import get_current_user
from engine.models import PastSession

router = APIRouter()


@router.get("", response_model=List[PastSession])
def list_past_sessions(
    current_user: models.CurrentUser = Depends(get_current_user),
    db_session: Session = Depends(get_db),
):
    try:
        return crud.list_sessions(db_session, current_user.id)
    except Exception as e:
        print(f"API Sessions [User={current_user.id}] - ERROR fetching sessions: {type(e).__name__} - {e}")
        print(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Failed to fetch sessions")


@router.post("", response_model=models.SuccessResponse)
def save_past_session(
    past_session: PastSession,
    current_user: models.CurrentUser = Depends(get_current_user),
    db_session: Session = Depends(get_db),
):
    log_prefix = f"API Sessions [User={current_user.id}]: Session={past_session.id[-8:]}"
    try:
        crud.append_session(db_session, current_user.id, past_session)
    except crud.SessionAlreadyExists:
        print(f"{log_prefix} - Rejected duplicate session id.")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session already exists")
    except Exception as e:
        print(f"{log_prefix} - ERROR saving session: {type(e).__name__} - {e}")
        print(traceback.format_exc())
        raise HTTPException(status_code=500, detail="Failed to save session")
    return models.SuccessResponse()
