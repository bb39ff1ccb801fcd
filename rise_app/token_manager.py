"""
Access token lifecycle for Rise.ai installations.

Tokens come from a client-credentials exchange at the platform token endpoint, with the
instance_id as tenant discriminator. The same grant is repeated to refresh an expired
token (Rise.ai issues no refresh_token for app installations).

Concurrent refreshes of one instance_id share a single in-flight exchange, so an expired
token never triggers duplicate calls to the token endpoint.
"""
import asyncio
import logging
from functools import partial
from typing import Callable

import httpx

from rise_app.errors import InstallationNotFound, UpstreamAuthError, UpstreamTimeout
from rise_app.installation_store import InstallationRecord, InstallationStore, now_ms
from rise_app.upstream import open_client, response_body

logger = logging.getLogger(__name__)


class TokenManager:
    def __init__(
        self,
        store: InstallationStore,
        *,
        token_url: str,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
        refresh_margin_seconds: int = 0,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.refresh_margin_ms = refresh_margin_seconds * 1000
        self._http_client = http_client
        self._clock = clock
        self._inflight: dict[str, asyncio.Task] = {}

    async def _request_token(self, instance_id: str) -> dict:
        """POST the client-credentials grant. Returns the token response; raises on any failure."""
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "instance_id": instance_id,
        }
        try:
            async with open_client(self._http_client, self.timeout) as client:
                r = await client.post(
                    self.token_url,
                    json=payload,
                    headers={"Content-Type": "application/json", "Accept": "application/json"},
                    timeout=self.timeout,
                )
        except httpx.TimeoutException as e:
            logger.error("Token exchange timed out for instance %s after %ss", instance_id, self.timeout)
            raise UpstreamTimeout() from e
        except httpx.HTTPError as e:
            logger.error("Token exchange failed for instance %s: %s", instance_id, e)
            raise UpstreamAuthError(details=str(e)) from e

        body = response_body(r)
        if not r.is_success:
            logger.error("Token exchange failed for instance %s: HTTP %s %s", instance_id, r.status_code, body)
            raise UpstreamAuthError(upstream_status=r.status_code, details=body)
        if not isinstance(body, dict) or not body.get("access_token"):
            logger.error("Token response for instance %s has no access_token", instance_id)
            raise UpstreamAuthError("Token response missing access_token", upstream_status=r.status_code, details=body)
        return body

    def _expires_at(self, data: dict) -> int:
        return self._clock() + int(data.get("expires_in") or 0) * 1000

    async def exchange_code(self, instance_id: str) -> InstallationRecord:
        """First token for a new installation. Does not write the store; never retries."""
        data = await self._request_token(instance_id)
        now = self._clock()
        return InstallationRecord(
            instance_id=instance_id,
            access_token=data["access_token"],
            expires_at=self._expires_at(data),
            created_at=now,
        )

    async def get_valid_token(self, instance_id: str) -> str:
        """Stored token for instance_id, refreshed first if expired (expires_at <= now + margin)."""
        record = self.store.get(instance_id)
        if record is None:
            raise InstallationNotFound(instance_id)
        if not record.is_expired(self._clock(), self.refresh_margin_ms):
            return record.access_token
        logger.info("Refreshing expired token for instance %s", instance_id)
        record = await self.refresh(instance_id)
        return record.access_token

    async def refresh(self, instance_id: str) -> InstallationRecord:
        """Re-exchange and store. Callers racing on the same instance_id await one shared exchange."""
        task = self._inflight.get(instance_id)
        if task is None:
            task = asyncio.ensure_future(self._refresh(instance_id))
            self._inflight[instance_id] = task
            task.add_done_callback(partial(self._forget, instance_id))
        # shield: a cancelled caller must not cancel the exchange others are waiting on
        return await asyncio.shield(task)

    def _forget(self, instance_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(instance_id) is task:
            del self._inflight[instance_id]

    async def _refresh(self, instance_id: str) -> InstallationRecord:
        data = await self._request_token(instance_id)
        current = self.store.get(instance_id)
        if current is None:
            # Removed (AppRemoved) while the exchange was in flight; do not resurrect it
            raise InstallationNotFound(instance_id)
        record = current.with_token(data["access_token"], self._expires_at(data))
        self.store.put(record)
        logger.info("Token refreshed for instance %s", instance_id)
        return record
