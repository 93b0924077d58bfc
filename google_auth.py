from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from config import get_settings
from services import AuthError, UpstreamError

logger = logging.getLogger(__name__)

TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
TRUSTED_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


@dataclass(frozen=True)
class GoogleIdentity:
    google_id: Optional[str]
    email: str
    full_name: Optional[str]
    picture: Optional[str]
    email_verified: bool


def _truthy(value: object) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


class GoogleAuthClient:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.client_id = client_id if client_id is not None else settings.google_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.google_client_secret
        )
        self.timeout = timeout or settings.upstream_timeout_secs

    def _fetch_json(self, req: Request) -> dict:
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except HTTPError as exc:
            # Google answers 400 for bad tokens and codes; the body carries the reason.
            try:
                payload = json.loads(exc.read().decode("utf-8"))
            except (ValueError, OSError):
                payload = {}
            if 400 <= exc.code < 500:
                return {"error": payload.get("error") or f"http_{exc.code}"}
            raise UpstreamError(f"Google responded with HTTP {exc.code}") from exc
        except (URLError, TimeoutError, json.JSONDecodeError) as exc:
            raise UpstreamError("Failed to reach Google") from exc

    def verify_id_token(self, credential: str) -> GoogleIdentity:
        if not self.client_id:
            raise UpstreamError("Google sign-in is not configured")
        req = Request(
            f"{TOKENINFO_URL}?{urlencode({'id_token': credential})}",
            headers={"Accept": "application/json"},
        )
        payload = self._fetch_json(req)
        if payload.get("error"):
            raise AuthError("Invalid Google credential")
        if payload.get("aud") != self.client_id:
            raise AuthError("Google credential was issued for another client")
        if payload.get("iss") not in TRUSTED_ISSUERS:
            raise AuthError("Google credential has an untrusted issuer")
        if not payload.get("email"):
            raise AuthError("Google account has no email address")

        return GoogleIdentity(
            google_id=payload.get("sub"),
            email=payload["email"],
            full_name=payload.get("name"),
            picture=payload.get("picture"),
            email_verified=_truthy(payload.get("email_verified")),
        )

    def exchange_code(self, code: str) -> GoogleIdentity:
        if not (self.client_id and self.client_secret):
            raise UpstreamError("Google sign-in is not configured")
        body = urlencode(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": "postmessage",
            }
        ).encode("utf-8")
        tokens = self._fetch_json(
            Request(
                TOKEN_URL,
                data=body,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
                method="POST",
            )
        )
        access_token = tokens.get("access_token")
        if not access_token:
            logger.warning(f"google_code_exchange_failed: error={tokens.get('error')}")
            raise ValueError("Failed to exchange code for tokens")

        user = self._fetch_json(
            Request(
                USERINFO_URL,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        )
        if user.get("error") or not user.get("email"):
            raise AuthError("Google account has no email address")

        return GoogleIdentity(
            google_id=user.get("id"),
            email=user["email"],
            full_name=user.get("name"),
            picture=user.get("picture"),
            email_verified=_truthy(user.get("verified_email")),
        )
