from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str
    provider: Optional[str]


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.token_secret, salt="auth-token")


def issue_token(user_id: int, email: str, provider: Optional[str] = None) -> str:
    token_data = {"u": user_id, "e": email, "p": provider}
    return _serializer().dumps(token_data)


def read_token(token: str, max_age_hours: Optional[int] = None) -> Optional[TokenClaims]:
    if max_age_hours is None:
        max_age_hours = get_settings().token_max_age_hours
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except BadSignature:
        return None

    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, int):
        return None
    return TokenClaims(user_id=user_id, email=data.get("e") or "", provider=data.get("p"))


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()
