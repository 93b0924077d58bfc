import pytest

from auth_tokens import bearer_token, issue_token, read_token
from google_auth import GoogleAuthClient
from services import AuthError


def test_token_round_trip() -> None:
    token = issue_token(7, "asha@example.com", "google")

    claims = read_token(token)

    assert claims is not None
    assert claims.user_id == 7
    assert claims.email == "asha@example.com"
    assert claims.provider == "google"


def test_tampered_token_is_rejected() -> None:
    token = issue_token(7, "asha@example.com")

    assert read_token(token + "x") is None
    assert read_token("not-a-token") is None


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc.def", "abc.def"),
        ("bearer abc", "abc"),
        ("Basic abc", None),
        ("Bearer ", None),
        (None, None),
    ],
)
def test_bearer_token_parsing(header, expected) -> None:
    assert bearer_token(header) == expected


def _google(monkeypatch, payload: dict) -> GoogleAuthClient:
    client = GoogleAuthClient(client_id="client-123", client_secret="s", timeout=1)
    monkeypatch.setattr(client, "_fetch_json", lambda req: payload)
    return client


def test_google_id_token_checks_audience(monkeypatch) -> None:
    client = _google(
        monkeypatch,
        {"aud": "someone-else", "iss": "accounts.google.com", "email": "a@example.com"},
    )

    with pytest.raises(AuthError, match="another client"):
        client.verify_id_token("credential")


def test_google_id_token_returns_identity(monkeypatch) -> None:
    client = _google(
        monkeypatch,
        {
            "aud": "client-123",
            "iss": "https://accounts.google.com",
            "sub": "1234",
            "email": "a@example.com",
            "email_verified": "true",
            "name": "Asha",
        },
    )

    identity = client.verify_id_token("credential")

    assert identity.google_id == "1234"
    assert identity.email_verified is True
    assert identity.full_name == "Asha"


def test_google_code_exchange_failure(monkeypatch) -> None:
    client = _google(monkeypatch, {"error": "invalid_grant"})

    with pytest.raises(ValueError, match="Failed to exchange code for tokens"):
        client.exchange_code("bad-code")


def test_google_code_userinfo_without_verified_flag_is_unverified(monkeypatch) -> None:
    client = GoogleAuthClient(client_id="client-123", client_secret="s", timeout=1)
    replies = iter(
        [
            {"access_token": "at-1"},
            {"id": "1234", "email": "boss@corp.example", "name": "Not The Boss"},
        ]
    )
    monkeypatch.setattr(client, "_fetch_json", lambda req: next(replies))

    identity = client.exchange_code("code")

    assert identity.email == "boss@corp.example"
    assert identity.email_verified is False
