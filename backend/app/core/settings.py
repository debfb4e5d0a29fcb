import os


class Settings:
    def __init__(self):
        self.app_name = "RentLedger Billing"
        self.api_version = "1.0.0"
        self.environment = os.getenv("ENVIRONMENT", "development")
        self.secret_key = os.getenv("SECRET_KEY", "CHANGE_ME")
        self.SECRET_KEY = self.secret_key
        self.access_token_expire_minutes = 30
        self.ACCESS_TOKEN_EXPIRE_MINUTES = self.access_token_expire_minutes
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./rentledger.db")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Billing defaults, overridable per lease through LeaseBillingSetting
        self.default_invoice_prefix = "INV"
        self.credit_note_prefix = "CN"
        self.default_proration_method = "ActualDaysInMonth"
        self.default_payment_term_days = 0
        self.run_error_summary_limit = 10

        self.storage_root = os.getenv("STORAGE_ROOT", "./storage")
        self.signed_url_expiry_minutes = 60
        self.max_attachment_bytes = 10 * 1024 * 1024


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
