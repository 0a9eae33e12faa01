import os


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    def __init__(self):
        self.app_name = "CaseBill"
        self.api_version = "1.0.0"
        self.environment = os.getenv("APP_ENV", "development")
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./casebill.db")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        # Net days applied when an invoice is created without an explicit due date
        self.default_payment_terms_days = int(os.getenv("DEFAULT_PAYMENT_TERMS_DAYS", "14"))
        self.cors_origins = _parse_csv(
            os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
        )
        self.create_tables_on_startup = _parse_bool(
            os.getenv("CREATE_TABLES_ON_STARTUP"), self.environment != "production"
        )


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
