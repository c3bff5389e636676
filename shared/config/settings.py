import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _csv(name: str, default: str = "") -> list[str]:
    return [part.strip() for part in os.getenv(name, default).split(",") if part.strip()]


APP_ENV = os.getenv("APP_ENV", os.getenv("NODE_ENV", "development"))
IS_PRODUCTION = APP_ENV == "production"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Database ---
DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost")
DB_PORT = os.getenv("POSTGRES_PORT", "5432")
DB_NAME = os.getenv("POSTGRES_DB", "checkout")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)
DB_ECHO = _flag("DB_ECHO")

# --- Stripe ---
USE_STRIPE_TEST_MODE = _flag("USE_STRIPE_TEST_MODE")
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_SECRET_KEY_TEST = os.getenv("STRIPE_SECRET_KEY_TEST", os.getenv("STRIPE_SECRET_KEY_test", ""))

# --- Frontend / redirects ---
FRONTEND_URLS = _csv(
    "FRONTEND_URL",
    "http://localhost:5173,http://localhost:8081,http://localhost:3000,http://localhost:8080",
)
DASHBOARD_URL = os.getenv("DASHBOARD_URL", "")
EXTRA_ALLOWED_ORIGINS = _csv("EXTRA_ALLOWED_ORIGINS")

_frontend_url = FRONTEND_URLS[0] if FRONTEND_URLS else "http://localhost:8080"
SUCCESS_URL = os.getenv("SUCCESS_URL", f"{_frontend_url}/order-confirmation")
CANCEL_URL = os.getenv("CANCEL_URL", f"{_frontend_url}/checkout?canceled=true")
SHIPPING_COUNTRIES = _csv("SHIPPING_COUNTRIES", "SE,US,GB,CA,AU")

# --- Email (Resend) ---
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com")
EMAIL_FROM = os.getenv("EMAIL_FROM", os.getenv("SMTP_USER", "support@arvsouq.com"))
EMAIL_BRAND = os.getenv("EMAIL_BRAND", "ARV Souq")
EMAIL_TIMEOUT_SECONDS = float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))

# --- Observability ---
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "")


PRODUCTION_ORIGINS = [
    "https://dashboard-one-delta-12.vercel.app",
    "https://arvsouq.com",
    "https://www.arvsouq.com",
]

# Any localhost port, outside production only
LOCALHOST_ORIGIN_REGEX = r"^http://(localhost|127\.0\.0\.1):\d+$"


def allowed_origins() -> list[str]:
    origins = list(EXTRA_ALLOWED_ORIGINS)
    if DASHBOARD_URL:
        origins.append(DASHBOARD_URL)
    origins.extend(FRONTEND_URLS)
    origins.extend(PRODUCTION_ORIGINS)
    return origins
