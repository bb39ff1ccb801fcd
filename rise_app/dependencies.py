"""
Process-wide collaborators exposed as FastAPI dependencies.
Built lazily on first use; tests replace them through app.dependency_overrides.
"""
import logging

from rise_app import config
from rise_app.installation_store import InstallationStore, MemoryInstallationStore, SqlInstallationStore
from rise_app.keys import load_public_key_from_settings
from rise_app.rise_api import RiseApiClient
from rise_app.token_manager import TokenManager

logger = logging.getLogger(__name__)

_store: InstallationStore | None = None
_token_manager: TokenManager | None = None
_rise_api: RiseApiClient | None = None
_public_key = None


def get_installation_store() -> InstallationStore:
    global _store
    if _store is None:
        if config.DATABASE_URL:
            from rise_app.database import make_session_factory

            _store = SqlInstallationStore(make_session_factory(config.DATABASE_URL))
            logger.info("Using SQL installation store")
        else:
            # Volatile: installations are lost on restart
            _store = MemoryInstallationStore()
            logger.info("Using in-memory installation store")
    return _store


def get_token_manager() -> TokenManager:
    global _token_manager
    if _token_manager is None:
        _token_manager = TokenManager(
            get_installation_store(),
            token_url=config.TOKEN_URL,
            client_id=config.CLIENT_ID,
            client_secret=config.CLIENT_SECRET,
            timeout=config.HTTP_TIMEOUT_SECONDS,
            refresh_margin_seconds=config.TOKEN_REFRESH_MARGIN_SECONDS,
        )
    return _token_manager


def get_rise_api() -> RiseApiClient:
    global _rise_api
    if _rise_api is None:
        _rise_api = RiseApiClient(
            config.RISE_PLATFORM_URL,
            get_token_manager(),
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
    return _rise_api


def get_verification_key():
    global _public_key
    if _public_key is None:
        _public_key = load_public_key_from_settings(config.CLIENT_PUBLIC_KEY, config.CLIENT_PUBLIC_KEY_PATH)
    return _public_key


def reset() -> None:
    """Drop cached collaborators (tests)."""
    global _store, _token_manager, _rise_api, _public_key
    _store = None
    _token_manager = None
    _rise_api = None
    _public_key = None
