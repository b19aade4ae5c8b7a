import os
from dotenv import load_dotenv

# Loads .env from the project root
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./formfit.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

UPLOADS_DIR = os.getenv("UPLOADS_DIR", "uploads").strip() or "uploads"

# Messenger (Graph API)
MESSENGER_PAGE_ACCESS_TOKEN = os.getenv("MESSENGER_PAGE_ACCESS_TOKEN", os.getenv("PAGE_ACCESS_TOKEN", ""))
MESSENGER_VERIFY_TOKEN = os.getenv("MESSENGER_VERIFY_TOKEN", os.getenv("VERIFY_TOKEN", ""))
META_API_VERSION = os.getenv("META_API_VERSION", "v19.0")

# Model generation (photo -> STL)
# "tooltrace" drives tooltrace.ai in a headless browser; "http" posts to MODEL_SERVICE_URL
MODEL_GENERATOR = os.getenv("MODEL_GENERATOR", "tooltrace").strip().lower() or "tooltrace"
TOOLTRACE_URL = os.getenv("TOOLTRACE_URL", "https://www.tooltrace.ai").strip()
TOOLTRACE_HEADLESS = os.getenv("TOOLTRACE_HEADLESS", "true").strip().lower() not in {"0", "false", "no", "off"}
TOOLTRACE_TIMEOUT_MS = int(os.getenv("TOOLTRACE_TIMEOUT_MS", "60000"))
TOOLTRACE_THICKNESS_MM = os.getenv("TOOLTRACE_THICKNESS_MM", "20").strip() or "20"
MODEL_SERVICE_URL = os.getenv("MODEL_SERVICE_URL", "").strip()
MODEL_SERVICE_API_KEY = os.getenv("MODEL_SERVICE_API_KEY", "").strip()
MODEL_SERVICE_TIMEOUT_SECONDS = float(os.getenv("MODEL_SERVICE_TIMEOUT_SECONDS", "180"))
MODEL_GENERATION_ATTEMPTS = int(os.getenv("MODEL_GENERATION_ATTEMPTS", "2"))
MODEL_GENERATION_RETRY_DELAY_SECONDS = float(os.getenv("MODEL_GENERATION_RETRY_DELAY_SECONDS", "3"))

# Print vendor (Craftcloud)
CRAFTCLOUD_API_URL = os.getenv("CRAFTCLOUD_API_URL", "https://api.craftcloud3d.com/v5").rstrip("/")
CRAFTCLOUD_API_KEY = os.getenv("CRAFTCLOUD_API_KEY", "").strip()
CRAFTCLOUD_EMAIL = os.getenv("CRAFTCLOUD_EMAIL", "orders@formfitcustom.com").strip()
VENDOR_POLL_INTERVAL_SECONDS = float(os.getenv("VENDOR_POLL_INTERVAL_SECONDS", "2"))
VENDOR_POLL_MAX_ATTEMPTS = int(os.getenv("VENDOR_POLL_MAX_ATTEMPTS", "30"))

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Operator API: when set, /api/* requires the X-Dashboard-Token header
DASHBOARD_API_TOKEN = os.getenv("DASHBOARD_API_TOKEN", "").strip()
