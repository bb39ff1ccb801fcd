"""
Rise.ai webhooks: POST /rise/webhooks.

The request body is an RS256 JWT signed by Rise.ai. Its "data" claim is a JSON string
holding the event envelope {eventType, instanceId, data}, and the envelope's own "data"
is JSON-encoded again. That double encoding is the platform's wire format.
Nothing in the body is trusted before the signature verifies.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import jwt
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from rise_app.config import WEBHOOK_ALGORITHMS
from rise_app.dependencies import get_installation_store, get_verification_key
from rise_app.errors import InvalidSignature
from rise_app.installation_store import InstallationStore

logger = logging.getLogger(__name__)
router = APIRouter()

EVENT_APP_INSTALLED = "AppInstalled"
EVENT_APP_REMOVED = "AppRemoved"


@dataclass
class WebhookEvent:
    event_type: str
    instance_id: str | None
    data: dict[str, Any] = field(default_factory=dict)


def decode_signed_payload(raw_body: str, public_key) -> dict:
    """Verify the JWT signature and return its claims. Any failure raises InvalidSignature."""
    token = (raw_body or "").strip()
    if not token:
        raise InvalidSignature()
    try:
        return jwt.decode(
            token,
            public_key,
            algorithms=WEBHOOK_ALGORITHMS,
            options={"verify_aud": False},
        )
    except jwt.InvalidTokenError as e:
        logger.debug("Signed payload rejected: %s", e)
        raise InvalidSignature() from e


def _loads_object(value: Any, what: str) -> dict:
    """Decode a JSON-encoded object. Anything but a string holding a JSON object is rejected."""
    if not isinstance(value, str):
        raise ValueError(f"{what} is not a JSON string")
    decoded = json.loads(value)
    if not isinstance(decoded, dict):
        raise ValueError(f"{what} is not a JSON object")
    return decoded


def verify_webhook(raw_body: str, public_key) -> WebhookEvent:
    """Verify a webhook body and unwrap the double-encoded event envelope."""
    claims = decode_signed_payload(raw_body, public_key)
    try:
        envelope = _loads_object(claims.get("data"), "envelope")
        data = _loads_object(envelope.get("data"), "event data")
        event_type = envelope["eventType"]
    except (KeyError, ValueError) as e:
        logger.warning("Webhook envelope malformed: %s", e)
        raise InvalidSignature() from e
    return WebhookEvent(event_type=event_type, instance_id=envelope.get("instanceId"), data=data)


def handle_app_removed(store: InstallationStore, instance_id: str | None) -> None:
    """Forget the installation. Redelivery of the same event is a no-op."""
    logger.info("App removed for instance: %s", instance_id)
    if instance_id:
        store.delete(instance_id)
    logger.info("Cleaned up installation data for instance: %s", instance_id)


def handle_app_installed(store: InstallationStore, instance_id: str | None, data: dict) -> None:
    # Token was already stored by the OAuth callback; hook for post-installation side effects
    logger.info("App installed for instance: %s", instance_id)


def dispatch_event(event: WebhookEvent, store: InstallationStore) -> None:
    if event.event_type == EVENT_APP_REMOVED:
        handle_app_removed(store, event.instance_id)
    elif event.event_type == EVENT_APP_INSTALLED:
        handle_app_installed(store, event.instance_id, event.data)
    else:
        logger.info("Unknown webhook event: %s", event.event_type)


@router.post("/rise/webhooks")
async def receive_webhook(
    request: Request,
    store: InstallationStore = Depends(get_installation_store),
    public_key=Depends(get_verification_key),
):
    """Verify, then dispatch. Any verified event gets 200, recognized or not."""
    raw_body = (await request.body()).decode("utf-8", errors="replace")
    try:
        event = verify_webhook(raw_body, public_key)
    except InvalidSignature as e:
        logger.warning("Webhook verification failed")
        return JSONResponse(status_code=e.status_code, content=e.to_dict())

    logger.info("Webhook received: %s for instance %s", event.event_type, event.instance_id)
    dispatch_event(event, store)
    return {"received": True}
