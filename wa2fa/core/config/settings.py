"""Application settings with Pydantic validation."""

import re
import secrets
from typing import Any, Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# BOM, zero-width spaces, directional marks, soft hyphen and other control
# characters that sneak in when values are copy-pasted from a console.
_INVISIBLE_CHARS = re.compile(
    r"[\ufeff\u200b-\u200f\u00ad\u2060\u180e\x00-\x08\x0b\x0c\x0e-\x1f\x7f]"
)


def sanitize_value(value: str) -> str:
    """Strip invisible unicode characters and surrounding whitespace."""
    return _INVISIBLE_CHARS.sub("", value).strip()


class Wa2faSettings(BaseSettings):
    """Application settings with validation and environment variable support."""

    # WhatsApp Cloud API
    access_token: SecretStr = Field(
        default=SecretStr(""), description="WhatsApp Cloud API permanent access token"
    )
    phone_number_id: str = Field(default="", description="WhatsApp Business phone number ID")
    api_version: str = Field(default="v22.0", description="Graph API version")
    business_phone: str = Field(
        default="",
        description=(
            "Business WhatsApp number used in wa.me deep links. "
            "Falls back to phone_number_id when empty."
        ),
    )

    # OTP method
    otp_enabled: bool = Field(default=True, description="Enable delivered-code verification")
    otp_length: int = Field(default=6, description="OTP length (4-10 digits)")
    otp_expiry: int = Field(default=300, gt=0, description="OTP validity window in seconds")
    otp_max_attempts: int = Field(
        default=5, ge=0, description="Failed attempts before lockout (0 = unlimited)"
    )
    otp_max_resend: int = Field(
        default=3, ge=0, description="OTP resends per login attempt (0 = unlimited)"
    )
    template_otp: str = Field(default="otp_message", description="Authentication template name")
    default_language: str = Field(default="en", description="Template language code")
    default_country_code: str = Field(
        default="",
        description=(
            "Calling code (digits, e.g. 91) applied to numbers entered without "
            "an international prefix. Empty means numbers must be international."
        ),
    )

    # Login notifications
    login_notification_enabled: bool = Field(
        default=False, description="Alert the phone owner after every completed login"
    )
    template_login: str = Field(
        default="login_notification", description="Login alert template name"
    )
    template_login_layout: str = Field(
        default=(
            "New login for {{username}} at {{login_time}} from IP {{ip_address}} "
            "({{browser}}). If this wasn't you, secure your account."
        ),
        description="SMS fallback text for login alerts",
    )

    # QR method
    qr_enabled: bool = Field(default=False, description="Enable scan-to-verify challenges")
    qr_ttl: int = Field(default=300, gt=0, description="QR challenge validity in seconds")
    token_namespace: str = Field(
        default="", description="Token prefix (uppercased, non-alphanumerics stripped)"
    )

    # Webhook
    webhook_verify_token: str = Field(
        default="wa2fa-default-token", description="hub.verify_token for the subscription check"
    )
    app_secret: Optional[SecretStr] = Field(
        default=None,
        description=(
            "Meta App Secret for X-Hub-Signature-256 verification. "
            "If not configured, webhook signature validation is skipped (insecure)."
        ),
    )
    link_signing_key: SecretStr = Field(
        default_factory=lambda: SecretStr(secrets.token_urlsafe(32)),
        description="Key for signing identity confirmation links",
    )
    public_base_url: str = Field(
        default="http://localhost:8000", description="External base URL used in reply links"
    )

    # SMS fallback
    sms_fallback_url: Optional[str] = Field(
        default=None,
        description="SMS gateway base URL (receives to, content and coding parameters)",
    )
    sms_fallback_method: str = Field(default="GET", description="SMS gateway HTTP method")

    # Acknowledgement replies ({{last4}} = last 4 digits of the expected phone)
    qr_ack_verified: str = Field(
        default="✅ Login verified successfully! You may close this chat."
    )
    qr_ack_mismatch: str = Field(
        default=(
            "❌ Verification failed. Please try from the mobile number ending in {{last4}}."
        )
    )
    qr_ack_expired: str = Field(
        default=(
            "⏰ This verification code has expired. "
            "Please request a new one from the login page."
        )
    )
    qr_ack_no_match: str = Field(
        default=(
            "❓ This message was not recognised as a verification code. "
            "If you are trying to log in, please scan the QR code from the login page."
        )
    )
    qr_ack_confirm: str = Field(
        default=(
            "🔗 Almost done! We sent a confirmation link to the number ending in "
            "{{last4}}. Open it on that phone to finish logging in."
        )
    )
    qr_confirm_link_text: str = Field(
        default=(
            "Confirm your login by opening {{link}} . "
            "If you did not try to log in, ignore this message."
        ),
        description="Sent to the expected phone when the scan came from a hidden number",
    )

    # Environment
    env: str = Field(
        default="production",
        validation_alias=AliasChoices("ENV", "env"),
        description="Environment (production, development, testing, staging)",
    )

    @model_validator(mode="before")
    @classmethod
    def default_env_for_pytest(cls, data: Any) -> Any:
        """Auto-detect testing environment when running under pytest."""
        import sys

        if not isinstance(data, dict):
            return data

        if ("env" not in data or not data.get("env")) and "pytest" in sys.modules:
            data["env"] = "testing"

        return data

    # Logging
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "log_level"),
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # CORS
    cors_allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        validation_alias=AliasChoices("CORS_ALLOWED_ORIGINS", "cors_allowed_origins"),
        description="Comma-separated list of allowed CORS origins",
    )

    model_config = SettingsConfigDict(
        env_prefix="WA2FA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator(
        "phone_number_id",
        "api_version",
        "business_phone",
        "token_namespace",
        "default_country_code",
        "webhook_verify_token",
        "public_base_url",
        "sms_fallback_url",
        "sms_fallback_method",
        mode="before",
    )
    @classmethod
    def strip_invisible(cls, v: Any) -> Any:
        """Sanitize copy-pasted string values."""
        if isinstance(v, str):
            return sanitize_value(v)
        return v

    @field_validator("access_token", "app_secret", mode="before")
    @classmethod
    def strip_invisible_secret(cls, v: Any) -> Any:
        """Sanitize secrets; an empty app secret means "not configured"."""
        if isinstance(v, SecretStr):
            v = v.get_secret_value()
        if isinstance(v, str):
            v = sanitize_value(v)
        return v

    @field_validator("app_secret")
    @classmethod
    def empty_secret_is_none(cls, v: Optional[SecretStr]) -> Optional[SecretStr]:
        """Treat a blank app secret the same as an absent one."""
        if v is not None and not v.get_secret_value():
            return None
        return v

    @field_validator("link_signing_key")
    @classmethod
    def random_link_key_if_blank(cls, v: SecretStr) -> SecretStr:
        """Never sign confirmation links with an empty key."""
        if not v.get_secret_value().strip():
            return SecretStr(secrets.token_urlsafe(32))
        return v

    @field_validator("default_country_code")
    @classmethod
    def validate_country_code(cls, v: str) -> str:
        """Accept "+91", "0091" or "91"; keep the digits."""
        digits = v.lstrip("+").lstrip("0")
        if digits and not re.fullmatch(r"[1-9]\d{0,2}", digits):
            raise ValueError("WA2FA_DEFAULT_COUNTRY_CODE must be a 1-3 digit calling code")
        return digits

    @field_validator("sms_fallback_method")
    @classmethod
    def validate_sms_method(cls, v: str) -> str:
        """Validate SMS gateway method."""
        v_upper = v.upper()
        if v_upper not in ("GET", "POST"):
            raise ValueError("WA2FA_SMS_FALLBACK_METHOD must be GET or POST")
        return v_upper

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value."""
        allowed = ["production", "development", "testing", "staging"]
        if v.lower() not in allowed:
            raise ValueError(f'ENV must be one of: {", ".join(allowed)}')
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f'LOG_LEVEL must be one of: {", ".join(allowed)}')
        return v_upper

    @model_validator(mode="after")
    def ensure_a_method_is_enabled(self) -> "Wa2faSettings":
        """
        Require at least one verification method.

        Raises:
            ValueError: If both OTP and QR verification are disabled
        """
        if not self.otp_enabled and not self.qr_enabled:
            raise ValueError(
                "Both OTP and QR verification are disabled. "
                "Enable at least one of WA2FA_OTP_ENABLED / WA2FA_QR_ENABLED."
            )
        return self

    @model_validator(mode="after")
    def default_business_phone(self) -> "Wa2faSettings":
        """Fall back to the phone number ID for deep links."""
        if not self.business_phone:
            self.business_phone = self.phone_number_id
        return self

    @property
    def messaging_configured(self) -> bool:
        """True when outbound WhatsApp messages can be sent."""
        return bool(self.access_token.get_secret_value() and self.phone_number_id)

    @property
    def app_secret_value(self) -> Optional[str]:
        """Plain app secret or None."""
        return self.app_secret.get_secret_value() if self.app_secret else None

    def is_development(self) -> bool:
        """
        Check if running in development mode.

        Returns:
            True if development environment
        """
        return self.env == "development"

    def is_production(self) -> bool:
        """
        Check if running in production mode.

        Returns:
            True if production environment
        """
        return self.env == "production"


# Singleton instance
_settings: Optional[Wa2faSettings] = None


def get_settings() -> Wa2faSettings:
    """
    Get application settings singleton.

    Returns:
        Wa2faSettings instance

    Raises:
        ValidationError: If settings are missing or invalid
    """
    global _settings
    if _settings is None:
        _settings = Wa2faSettings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings
    _settings = None
