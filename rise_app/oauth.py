"""
OAuth installation flow with Rise.ai.

GET /oauth/rise/authorize  Rise.ai sends the merchant here with an install token; we redirect
                           to the Rise.ai installer with our appId and callback URL.
GET /oauth/rise/callback   Rise.ai redirects back with code + instanceId; we mint the first
                           access token and store the installation.
"""
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from rise_app import config
from rise_app.dependencies import get_installation_store, get_token_manager
from rise_app.errors import MissingParameters, UpstreamAuthError, UpstreamTimeout
from rise_app.installation_store import InstallationRecord, InstallationStore
from rise_app.installer import build_authorize_url
from rise_app.pages import error_page, installation_complete_page
from rise_app.token_manager import TokenManager

logger = logging.getLogger(__name__)
router = APIRouter()


async def handle_callback(
    code: str | None,
    instance_id: str | None,
    manager: TokenManager,
    store: InstallationStore,
) -> InstallationRecord:
    """Exchange for the installation's first token and persist it."""
    if not code or not instance_id:
        raise MissingParameters()
    logger.info("Exchanging authorization code for access token (instance %s)", instance_id)
    record = await manager.exchange_code(instance_id)
    store.put(record)
    logger.info("Installation completed for instance: %s", instance_id)
    return record


@router.get("/oauth/rise/authorize")
def authorize(token: str | None = None):
    """Start the installation: redirect to the Rise.ai installer."""
    url = build_authorize_url(
        token,
        installer_url=config.INSTALLER_URL,
        client_id=config.CLIENT_ID,
        redirect_uri=config.REDIRECT_URI,
    )
    logger.info("Starting OAuth flow...")
    return RedirectResponse(url=url, status_code=302)


@router.get("/oauth/rise/callback")
async def callback(
    code: str | None = None,
    instance_id: str | None = Query(None, alias="instanceId"),
    manager: TokenManager = Depends(get_token_manager),
    store: InstallationStore = Depends(get_installation_store),
):
    """Finish the installation. Upstream failures render a generic page; details are logged only."""
    try:
        record = await handle_callback(code, instance_id, manager, store)
    except (UpstreamAuthError, UpstreamTimeout) as e:
        logger.error("Token exchange failed for instance %s: %s %s", instance_id, e.message, e.details)
        return error_page(
            "Installation Failed",
            "There was an error connecting to Rise.ai. Please try again.",
            status_code=500,
        )
    return installation_complete_page(record.instance_id, config.APP_NAME)
