import time
from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadData, URLSafeSerializer

from config import get_settings
from errors import InvalidToken, MissingOrMalformedHeader

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class TokenClaims:
    subject_id: int
    subject_email: str
    issued_at: int
    expires_at: int


def _serializer() -> URLSafeSerializer:
    settings = get_settings()
    return URLSafeSerializer(settings.token_secret, salt="session-token")


def _current_time(now: Optional[float]) -> int:
    return int(time.time() if now is None else now)


def issue_token(subject_id: int, subject_email: str, *, now: Optional[float] = None) -> str:
    settings = get_settings()
    timestamp = _current_time(now)
    expiry = timestamp + (settings.token_max_age_hours * 3600)

    token_data = {
        "sub": subject_id,
        "email": subject_email,
        "iat": timestamp,
        "exp": expiry,
    }

    return _serializer().dumps(token_data)


def validate_token(token: str, *, now: Optional[float] = None) -> TokenClaims:
    try:
        data = _serializer().loads(token)
    except BadData as exc:
        raise InvalidToken() from exc

    if not isinstance(data, dict):
        raise InvalidToken()
    try:
        claims = TokenClaims(
            subject_id=int(data["sub"]),
            subject_email=str(data["email"]),
            issued_at=int(data["iat"]),
            expires_at=int(data["exp"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidToken() from exc

    if _current_time(now) > claims.expires_at:
        raise InvalidToken()

    return claims


def identity_from_header(
    authorization: Optional[str], *, now: Optional[float] = None
) -> TokenClaims:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise MissingOrMalformedHeader()
    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        raise MissingOrMalformedHeader()
    return validate_token(token, now=now)
