import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_DIR = None if DATABASE_URL else os.path.join(BASE_DIR, "database")
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "courier_desk.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", True)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-courier-desk")
    PORT = _int_env("PORT", 3000)
    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    PROVIDER_MODE = os.environ.get("PROVIDER_MODE", "uber")
    PROVIDER_SIMULATOR_SEED = _int_env("PROVIDER_SIMULATOR_SEED", 42)
    PROVIDER_TIMEOUT_SECONDS = _int_env("PROVIDER_TIMEOUT_SECONDS", 20)
    PROVIDER_VERIFY_SSL = _bool_env("PROVIDER_VERIFY_SSL", True)
    UBER_BASE_URL = os.environ.get("UBER_BASE_URL", "https://api.uber.com")
    UBER_TOKEN_URL = os.environ.get("UBER_TOKEN_URL", "https://login.uber.com/oauth/v2/token")
    UBER_SCOPE = os.environ.get("UBER_SCOPE", "eats.deliveries")
    UBER_CLIENT_ID = os.environ.get("UBER_CLIENT_ID")
    UBER_CLIENT_SECRET = os.environ.get("UBER_CLIENT_SECRET")
    UBER_CUSTOMER_ID = os.environ.get("UBER_CUSTOMER_ID")
    TOKEN_EXPIRY_SAFETY_SECONDS = _int_env("TOKEN_EXPIRY_SAFETY_SECONDS", 60)

    ALLOW_MISSING_CONTACT_PHONE = _bool_env("ALLOW_MISSING_CONTACT_PHONE", False)
    DEFAULT_MANIFEST_SIZE = os.environ.get("DEFAULT_MANIFEST_SIZE", "medium")

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is required in production.")
        if env == "production" and self.SECRET_KEY == "dev-secret-courier-desk":
            raise RuntimeError("SECRET_KEY must be set in production.")
