
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("invoicemax", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Storage
    database_path: str = Field("invoicemax.db", alias="DATABASE_PATH")
    default_currency: str = Field("NGN", alias="DEFAULT_CURRENCY")

    # Draft autosave (trailing-edge debounce window)
    autosave_debounce_seconds: float = Field(1.0, alias="AUTOSAVE_DEBOUNCE_SECONDS")

    # PDF export
    export_reference_width_px: int = Field(816, alias="EXPORT_REFERENCE_WIDTH_PX")  # legal width at 96 dpi
    export_oversample: float = Field(1.5, alias="EXPORT_OVERSAMPLE")
    export_settle_seconds: float = Field(0.1, alias="EXPORT_SETTLE_SECONDS")
    preview_board_limit: int = Field(256, alias="PREVIEW_BOARD_LIMIT")  # boards kept in memory, least recently used evicted

    # Email (Resend)
    resend_api_key: str | None = Field(default=None, alias="RESEND_API_KEY")
    email_api_url: str = Field("https://api.resend.com/emails", alias="EMAIL_API_URL")
    email_from: str = Field("InvoiceMax <onboarding@resend.dev>", alias="EMAIL_FROM")
    email_max_attachment_bytes: int = Field(10 * 1024 * 1024, alias="EMAIL_MAX_ATTACHMENT_BYTES")
    email_timeout_seconds: float = Field(30.0, alias="EMAIL_TIMEOUT_SECONDS")

    # CORS allowed origins (comma-separated list for production deployment)
    cors_origins: str = Field("http://localhost:3000,http://127.0.0.1:3000", alias="CORS_ORIGINS")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

settings = Settings()
