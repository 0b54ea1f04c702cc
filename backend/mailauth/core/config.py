"""Application configuration loaded from environment variables.

Settings for database, session cookies, token encryption, password hashing,
outbound email and CSRF. Uses pydantic-settings for validation and .env
file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "mailauth_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "mailauth"
    database_user: str = "mailauth_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Session cookie (issued after login and email verification)
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "mailauth"
    auth_audience: str = "mailauth"
    auth_cookie_name: str = "mailauth.session-token"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""
    session_ttl_minutes: int = 120

    # Token codec: Fernet key used to encrypt ids and verification tokens
    # embedded in URLs. Previous keys are accepted for decryption only.
    token_encryption_key: SecretStr = SecretStr("")
    token_encryption_previous_keys: list[SecretStr] = []

    # Verification / reset token lifetime
    verification_token_ttl_hours: int = 24

    # Passwords
    bcrypt_rounds: int = 12
    password_min_length: int = 3

    # When False, login and forgot-password never disclose whether an
    # address is registered or verified.
    auth_reveal_account_state: bool = True

    # Email (Resend). Empty API key logs links instead of sending.
    email_from: str = "noreply@mailauth.local"
    resend_api_key: SecretStr = SecretStr("")

    # Backend URL (verification and reset links must hit the API directly)
    backend_url: str = "http://localhost:8000"

    # CSRF double-submit cookie
    csrf_cookie_name: str = "XSRF-TOKEN"
    csrf_header_name: str = "X-XSRF-TOKEN"
    csrf_param_name: str = "_token"

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Checks:
        - SameSite=None requires Secure flag (all environments)
        - CORS must not use wildcard origin (all environments)
        - Token lifetime and bcrypt cost must be positive (all environments)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        - TOKEN_ENCRYPTION_KEY must be set in production
        """
        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.verification_token_ttl_hours <= 0:
            msg = (
                "VERIFICATION_TOKEN_TTL_HOURS must be positive. "
                f"Got: {self.verification_token_ttl_hours}"
            )
            raise ValueError(msg)

        # bcrypt accepts cost factors 4..31
        if not 4 <= self.bcrypt_rounds <= 31:
            msg = f"BCRYPT_ROUNDS must be between 4 and 31. Got: {self.bcrypt_rounds}"
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if not secret_value:
                msg = (
                    "AUTH_SECRET must be set in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters for adequate security."
                )
                raise ValueError(msg)

            if not self.token_encryption_key.get_secret_value():
                msg = (
                    "TOKEN_ENCRYPTION_KEY must be set in production. "
                    'Generate with: python -c "from cryptography.fernet import '
                    'Fernet; print(Fernet.generate_key().decode())"'
                )
                raise ValueError(msg)

        return self


settings = Settings()
