"""
Rise.ai integration configuration. Values come from the environment; no secrets in code.
"""
import os

# Rise.ai platform (installer, token endpoint and REST API live under this URL)
RISE_PLATFORM_URL = os.environ.get("RISE_PLATFORM_URL", "https://platform.rise.ai").rstrip("/")

# Externally reachable base URL of this server (used to derive the OAuth callback)
SERVER_BASE_URL = os.environ.get("SERVER_BASE_URL", "http://127.0.0.1:3000").rstrip("/")

# App credentials issued by Rise.ai
CLIENT_ID = os.environ.get("CLIENT_ID", "")
CLIENT_SECRET = os.environ.get("CLIENT_SECRET", "")

# PEM public key used to verify webhooks and workflow invocations.
# Env files often carry the PEM on one line with literal "\n" sequences.
CLIENT_PUBLIC_KEY = os.environ.get("CLIENT_PUBLIC_KEY", "").replace("\\n", "\n").strip()
CLIENT_PUBLIC_KEY_PATH = os.environ.get("CLIENT_PUBLIC_KEY_PATH", "").strip() or None

# Derived URLs
REDIRECT_URI = f"{SERVER_BASE_URL}/oauth/rise/callback"
INSTALLER_URL = f"{RISE_PLATFORM_URL}/installer"
TOKEN_URL = f"{RISE_PLATFORM_URL}/oauth2/token"

# Timeout (seconds) for token exchange and passthrough API calls
HTTP_TIMEOUT_SECONDS = float(os.environ.get("RISE_HTTP_TIMEOUT", "10"))

# Refresh access tokens this many seconds before expires_at (0 = only once expired)
TOKEN_REFRESH_MARGIN_SECONDS = int(os.environ.get("RISE_TOKEN_REFRESH_MARGIN", "0"))

# Optional SQLAlchemy URL for installations; unset keeps them in process memory
DATABASE_URL = os.environ.get("RISE_DATABASE_URL", "").strip() or None

# Optional bearer token protecting GET /api/installations
ADMIN_TOKEN = os.environ.get("RISE_ADMIN_TOKEN", "").strip() or None

# Signed payloads from Rise.ai are RS256 JWTs
WEBHOOK_ALGORITHMS = ["RS256"]

LOG_LEVEL = os.environ.get("RISE_LOG_LEVEL", "INFO").upper()
PORT = int(os.environ.get("PORT", "3000"))

APP_NAME = "Rise.ai Integration Example"
APP_VERSION = "1.0.0"


def missing_settings() -> list[str]:
    """Names of required settings that are not configured."""
    required = {
        "RISE_PLATFORM_URL": RISE_PLATFORM_URL,
        "SERVER_BASE_URL": SERVER_BASE_URL,
        "CLIENT_ID": CLIENT_ID,
        "CLIENT_SECRET": CLIENT_SECRET,
        "CLIENT_PUBLIC_KEY": CLIENT_PUBLIC_KEY or CLIENT_PUBLIC_KEY_PATH,
    }
    return [name for name, value in required.items() if not value]
