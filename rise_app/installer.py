"""
Installer URL for the Rise.ai app installation flow.
"""
from urllib.parse import quote

from rise_app.errors import MissingInstallToken


def build_authorize_url(
    install_token: str | None,
    *,
    installer_url: str,
    client_id: str,
    redirect_uri: str,
) -> str:
    """Installer URL carrying appId, the URL-encoded callback and the platform-issued install token."""
    if not install_token:
        raise MissingInstallToken()
    return (
        f"{installer_url}/install"
        f"?appId={quote(client_id, safe='')}"
        f"&redirectUrl={quote(redirect_uri, safe='')}"
        f"&token={quote(install_token, safe='')}"
    )
