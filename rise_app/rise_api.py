"""
Authenticated calls to the Rise.ai REST API on behalf of an installation.
"""
import logging
from typing import Any

import httpx

from rise_app.errors import UpstreamApiError, UpstreamTimeout
from rise_app.token_manager import TokenManager
from rise_app.upstream import open_client, response_body

logger = logging.getLogger(__name__)


class RiseApiClient:
    def __init__(
        self,
        base_url: str,
        token_manager: TokenManager,
        *,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_manager = token_manager
        self.timeout = timeout
        self._http_client = http_client

    async def call(
        self,
        method: str,
        endpoint: str,
        instance_id: str,
        data: Any = None,
        *,
        operation: str | None = None,
    ) -> Any:
        """
        Send method + endpoint with the installation's (refreshed if needed) access token.
        Returns the decoded response body. Raises InstallationNotFound, UpstreamAuthError,
        UpstreamTimeout or UpstreamApiError (status mirrors Rise.ai's).
        """
        operation = operation or f"call {endpoint}"
        access_token = await self.token_manager.get_valid_token(instance_id)
        # Rise.ai expects the raw token in Authorization, without a "Bearer" prefix
        headers = {"Authorization": access_token, "Content-Type": "application/json"}
        try:
            async with open_client(self._http_client, self.timeout) as client:
                r = await client.request(
                    method,
                    f"{self.base_url}{endpoint}",
                    headers=headers,
                    json=data,
                    timeout=self.timeout,
                )
        except httpx.TimeoutException as e:
            logger.error("API call failed for %s: timed out after %ss", operation, self.timeout)
            raise UpstreamTimeout() from e
        except httpx.HTTPError as e:
            logger.error("API call failed for %s: %s", operation, e)
            raise UpstreamApiError(f"Failed to {operation}", details=str(e)) from e

        body = response_body(r)
        if not r.is_success:
            logger.error("API call failed for %s: HTTP %s %s", operation, r.status_code, body)
            status_code = r.status_code if r.status_code >= 400 else 502
            raise UpstreamApiError(f"Failed to {operation}", details=body, status_code=status_code)
        return body
