import logging
import os
import secrets
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)


class Settings:
    def __init__(
        self,
        database_url: str,
        token_secret: str,
        token_max_age_hours: int,
        cors_origins: list[str],
        google_client_id: str,
        google_client_secret: str,
        razorpay_key_id: str,
        razorpay_key_secret: str,
        razorpay_webhook_secret: str,
        openai_api_key: str,
        openai_model: str,
        upstream_timeout_secs: float,
        smtp_host: str,
        smtp_port: int,
        smtp_user: str,
        smtp_password: str,
        email_from: str,
        profile_cache_ttl_secs: float,
        profile_lookup_timeout_secs: float,
    ) -> None:
        self.database_url = database_url
        self.token_secret = token_secret
        self.token_max_age_hours = token_max_age_hours
        self.cors_origins = cors_origins
        self.google_client_id = google_client_id
        self.google_client_secret = google_client_secret
        self.razorpay_key_id = razorpay_key_id
        self.razorpay_key_secret = razorpay_key_secret
        self.razorpay_webhook_secret = razorpay_webhook_secret
        self.openai_api_key = openai_api_key
        self.openai_model = openai_model
        self.upstream_timeout_secs = upstream_timeout_secs
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.email_from = email_from
        self.profile_cache_ttl_secs = profile_cache_ttl_secs
        self.profile_lookup_timeout_secs = profile_lookup_timeout_secs


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _token_secret() -> str:
    secret = os.getenv("FINANCE_TOKEN_SECRET", "")
    if secret:
        return secret
    # Tokens issued with a per-process secret stop validating after a restart.
    logger.warning("token_secret_missing: using a random per-process secret")
    return secrets.token_hex(32)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    smtp_user = os.getenv("FINANCE_SMTP_USER", "")
    return Settings(
        database_url=os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}"),
        token_secret=_token_secret(),
        token_max_age_hours=int(os.getenv("FINANCE_TOKEN_MAX_AGE_HOURS", "168")),
        cors_origins=_split_list(
            os.getenv(
                "FINANCE_CORS_ORIGINS",
                "http://localhost:5173,http://127.0.0.1:5173,"
                "http://localhost:5174,http://127.0.0.1:5174",
            )
        ),
        google_client_id=os.getenv("FINANCE_GOOGLE_CLIENT_ID", ""),
        google_client_secret=os.getenv("FINANCE_GOOGLE_CLIENT_SECRET", ""),
        razorpay_key_id=os.getenv("FINANCE_RAZORPAY_KEY_ID", ""),
        razorpay_key_secret=os.getenv("FINANCE_RAZORPAY_KEY_SECRET", ""),
        razorpay_webhook_secret=os.getenv("FINANCE_RAZORPAY_WEBHOOK_SECRET", ""),
        openai_api_key=os.getenv("FINANCE_OPENAI_API_KEY", ""),
        openai_model=os.getenv("FINANCE_OPENAI_MODEL", "gpt-3.5-turbo"),
        upstream_timeout_secs=float(os.getenv("FINANCE_UPSTREAM_TIMEOUT_SECS", "15")),
        smtp_host=os.getenv("FINANCE_SMTP_HOST", ""),
        smtp_port=int(os.getenv("FINANCE_SMTP_PORT", "587")),
        smtp_user=smtp_user,
        smtp_password=os.getenv("FINANCE_SMTP_PASSWORD", ""),
        email_from=os.getenv("FINANCE_EMAIL_FROM", smtp_user),
        profile_cache_ttl_secs=float(os.getenv("FINANCE_PROFILE_CACHE_TTL_SECS", "300")),
        profile_lookup_timeout_secs=float(
            os.getenv("FINANCE_PROFILE_LOOKUP_TIMEOUT_SECS", "5")
        ),
    )
