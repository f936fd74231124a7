from fastapi import APIRouter, Depends, HTTPException, Response, status
from datetime import timedelta

# Import necessary components from sibling files
from . import models, config
from .identity import IdentityGate, InvalidClaim, get_identity_gate
from .dependencies import get_current_user

router = APIRouter()


def set_credential_cookie(response: Response, token: str, max_age: timedelta):
    response.set_cookie(
        key=config.settings.COOKIE_NAME,
        value=token,
        max_age=int(max_age.total_seconds()),
        httponly=True,
        secure=config.settings.COOKIE_SECURE,
        samesite=config.settings.COOKIE_SAMESITE,
    )


# --- API Endpoints ---

@router.post("/phone", response_model=models.SuccessResponse, summary="Log in with a phone number")
async def login_with_phone(
    login_request: models.PhoneLoginRequest,
    response: Response,
    gate: IdentityGate = Depends(get_identity_gate),
):
    # No OTP step: presence of a phone-like string is the whole check
    try:
        token = gate.issue(login_request.phone or "")
    except InvalidClaim as e:
        print(f"Login failed for: {login_request.phone!r} ({e})")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    set_credential_cookie(response, token, gate.ttl)
    print(f"Login successful for phone ending {login_request.phone.strip()[-4:]}")
    return models.SuccessResponse()


@router.get("/me", response_model=models.CurrentUser)
async def read_current_user(current_user: models.CurrentUser = Depends(get_current_user)):
    return current_user


@router.post("/logout", response_model=models.SuccessResponse)
async def logout(response: Response):
    response.delete_cookie(
        key=config.settings.COOKIE_NAME,
        httponly=True,
        secure=config.settings.COOKIE_SECURE,
        samesite=config.settings.COOKIE_SAMESITE,
    )
    return models.SuccessResponse()
