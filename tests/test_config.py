import config


def test_token_secret_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("FINANCE_TOKEN_SECRET", "configured-secret")

    assert config._token_secret() == "configured-secret"


def test_missing_token_secret_is_random_per_process(monkeypatch) -> None:
    monkeypatch.delenv("FINANCE_TOKEN_SECRET", raising=False)

    first = config._token_secret()
    second = config._token_secret()

    assert len(first) == 64
    assert first != second
