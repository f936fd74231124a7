# app/identity.py

import re
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone

from . import config

# Optional leading +, then digits with common separators; at least 5 digits overall
PHONE_PATTERN = re.compile(r"^\+?[0-9\s().-]+$")
MIN_PHONE_DIGITS = 5


class InvalidClaim(ValueError):
    pass


def is_phone_like(value: str) -> bool:
    value = value.strip()
    if not PHONE_PATTERN.match(value):
        return False
    return sum(ch.isdigit() for ch in value) >= MIN_PHONE_DIGITS


class IdentityGate:
    """
    Issues and verifies the signed credential that binds a client to a phone identity.
    The secret is always supplied by the caller; there is no built-in fallback key.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", ttl: timedelta = timedelta(days=7)):
        if not secret or not secret.strip():
            raise ValueError("IdentityGate requires a non-empty signing secret")
        self.secret = secret
        self.algorithm = algorithm
        self.ttl = ttl

    def issue(self, phone: str) -> str:
        if not phone or not phone.strip():
            raise InvalidClaim("Phone required")
        phone = phone.strip()
        if not is_phone_like(phone):
            raise InvalidClaim("Invalid phone number")
        expire = datetime.now(timezone.utc) + self.ttl
        to_encode = {"id": phone, "phone": phone, "exp": expire}
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)

    def verify(self, token: str | None) -> dict | None:
        """Returns {"id", "phone"} for a valid credential, None for anything else."""
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            print(f"JWT Decode Error: {e}")
            return None
        user_id = payload.get("id")
        phone = payload.get("phone")
        if not user_id or not phone:
            print("Token missing id/phone claims")
            return None
        return {"id": user_id, "phone": phone}


identity_gate = IdentityGate(
    config.settings.JWT_SECRET,
    algorithm=config.settings.JWT_ALGORITHM,
    ttl=config.settings.TOKEN_TTL,
)


def get_identity_gate() -> IdentityGate:
    return identity_gate
