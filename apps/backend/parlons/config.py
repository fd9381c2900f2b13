from typing import Annotated

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources.types import NoDecode


_MIN_SESSION_SECRET_KEY_LENGTH = 32
_PLACEHOLDER_SESSION_SECRETS = frozenset({
    "change-me",
    "changeme",
    "change-me-to-random-value",
    "please-change-me",
    "secret",
})


def _split_csv(raw: object) -> tuple[str, ...] | object:
    """Turn a comma separated string (or sequence) into a trimmed, deduplicated tuple."""

    if raw is None:
        candidates: list[str] = []
    elif isinstance(raw, str):
        candidates = raw.split(",")
    else:
        try:
            candidates = list(raw)
        except TypeError:
            return raw

    normalised: list[str] = []
    seen: set[str] = set()
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        trimmed = candidate.strip()
        if not trimmed or trimmed in seen:
            continue
        seen.add(trimmed)
        normalised.append(trimmed)
    return tuple(normalised)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    環境変数から読み込まれるアプリ設定クラス。
    - environment: 実行環境（development/staging/production など）
    - session_*: セッションクッキーの署名・寿命
    - firestore_*: Firestore（本番/エミュレータ）の接続先
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )
    session_secret_key: str = Field(
        default="",
        description="Secret key for signing session cookies / セッションクッキー署名用シークレット",
    )
    session_cookie_name: str = Field(
        default="parlons_session",
        description="Session cookie name / セッションクッキー名",
    )
    session_cookie_secure: bool = Field(
        default=False,
        description="Whether to mark session cookie as Secure / セッションクッキーにSecure属性を付与するか",
    )
    session_max_age_seconds: int = Field(
        default=60 * 60 * 24 * 30,
        description="Session lifetime in seconds / セッションの寿命（秒）",
    )
    password_min_length: int = Field(
        default=8,
        description="Minimum password length on registration / 登録時のパスワード最小長",
    )
    password_hash_rounds: int = Field(
        default=12,
        description="bcrypt cost factor / bcrypt のコスト",
    )

    # --- Firestore ---
    firestore_project_id: str | None = Field(
        default=None,
        description="Firestore project id / Firestore のプロジェクトID",
    )
    firestore_emulator_host: str | None = Field(
        default=None,
        description="Firestore emulator host (host:port) / エミュレータの接続先",
    )
    gcp_project_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("gcp_project_id", "google_cloud_project"),
        description="Fallback GCP project id",
    )

    # --- Review ---
    review_due_limit: int = Field(
        default=50,
        description="Default max number of due cards returned at once / 一度に返す復習カード数の既定上限",
    )
    local_user_id: str = Field(
        default="local",
        description=(
            "Owner id used when session auth is disabled or when seeding / "
            "セッション認証無効時・シード時に使うユーザーID"
        ),
    )

    # --- HTTP ---
    allowed_cors_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(),
        description=(
            "Comma separated CORS origins / CORS で許可するオリジンのカンマ区切り一覧"
        ),
        validation_alias=AliasChoices("allowed_cors_origins", "cors_allowed_origins"),
    )
    trusted_proxy_ips: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("127.0.0.1",),
        description=(
            "Comma separated proxy IPs whose X-Forwarded-* headers are trusted / "
            "X-Forwarded-For を信頼するプロキシの IP 一覧"
        ),
    )
    security_hsts_max_age_seconds: int = Field(
        default=63072000,
        description="Strict-Transport-Security max-age directive in seconds",
    )
    security_csp_default_src: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("'self'",),
        description="Content-Security-Policy default-src sources (comma separated)",
    )

    disable_session_auth: bool = Field(
        default=False,
        description=(
            "Disable session cookie authentication (development/testing only) / "
            "セッションクッキー認証を無効化する（開発・テスト用途のみ）"
        ),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("session_secret_key", mode="after")
    @classmethod
    def _validate_session_secret(cls, value: str) -> str:
        """Reject empty, placeholder, or short session signing keys."""

        secret = (value or "").strip()
        if not secret:
            raise ValueError(
                "SESSION_SECRET_KEY must be a non-empty random string",
            )

        if secret.casefold() in _PLACEHOLDER_SESSION_SECRETS:
            raise ValueError(
                "SESSION_SECRET_KEY must not use placeholder values like 'change-me'",
            )

        if len(secret) < _MIN_SESSION_SECRET_KEY_LENGTH:
            raise ValueError(
                "SESSION_SECRET_KEY must be at least 32 characters long",
            )

        return secret

    @field_validator(
        "allowed_cors_origins",
        "security_csp_default_src",
        "trusted_proxy_ips",
        mode="before",
    )
    @classmethod
    def _normalise_csv_tuples(
        cls, raw: object
    ) -> tuple[str, ...] | object:  # pragma: no cover - pydantic handles typing
        return _split_csv(raw)

    @field_validator("password_min_length", "password_hash_rounds", mode="after")
    @classmethod
    def _validate_password_policy(cls, value: int) -> int:
        if value < 4:
            raise ValueError("password policy values must be at least 4")
        return value

    @model_validator(mode="after")
    def _apply_environment_sensitive_defaults(self) -> "Settings":
        """Enable the Secure cookie flag in production unless explicitly configured.

        ローカル開発では HTTP アクセスが多いため、ENVIRONMENT=production のときだけ
        Secure を既定で有効化する。
        """

        environment_name = (self.environment or "").lower()
        is_secure_explicitly_configured = "session_cookie_secure" in self.model_fields_set
        if environment_name == "production" and not is_secure_explicitly_configured:
            self.session_cookie_secure = True

        return self


settings = Settings()
