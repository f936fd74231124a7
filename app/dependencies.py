# app/dependencies.py

from fastapi import Depends, HTTPException, status, Request
from typing import Optional

from . import config, models
from .identity import IdentityGate, get_identity_gate
from engine.orchestrator import Orchestrator, OpenAIOrchestrator

_orchestrator: Optional[Orchestrator] = None


def _read_credential(request: Request) -> Optional[str]:
    """Cookie first; a Bearer header is accepted for non-browser clients."""
    token = request.cookies.get(config.settings.COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization")
    if auth_header:
        parts = auth_header.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return None


async def get_current_user(request: Request, gate: IdentityGate = Depends(get_identity_gate)) -> models.CurrentUser:
    """
    Dependency to get the current user from the signed credential.
    RAISES HTTPException 401 if the credential is missing or invalid.
    """
    token = _read_credential(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    claims = gate.verify(token)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return models.CurrentUser(**claims)


def get_orchestrator() -> Orchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = OpenAIOrchestrator(
            api_key=config.settings.OPENAI_API_KEY,
            model=config.settings.OPENAI_MODEL,
            evaluation_model=config.settings.EVALUATION_MODEL,
            theme_model=config.settings.THEME_VALIDATION_MODEL,
            timeout=config.settings.OPENAI_TIMEOUT_SECONDS,
        )
    return _orchestrator
