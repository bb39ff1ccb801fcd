"""
Rise.ai workflow actions: POST /rise/workflows/actions/v1/invoke.

The body is a signed JWT whose "data" claim is {request, metadata} (single-encoded,
unlike webhooks). We answer right away and run slow actions in the background.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse

from rise_app import config
from rise_app.dependencies import get_rise_api, get_verification_key
from rise_app.errors import InvalidSignature, RiseAppError
from rise_app.gift_cards import gift_card_payload, iso_utc
from rise_app.rise_api import RiseApiClient
from rise_app.webhooks import decode_signed_payload

logger = logging.getLogger(__name__)
router = APIRouter()

ACTION_CREATE_GIFT_CARD = "rise_test_application-create_giftcard_v1"


class GiftCardCreationError(RiseAppError):
    error = "gift_card_creation_failed"
    message = "Gift card creation failed"


def _object(value) -> dict:
    return value if isinstance(value, dict) else {}


def verify_invocation(raw_body: str, public_key) -> tuple[dict, dict]:
    """
    Verify the signature and return (request, metadata).
    actionParams and metadata that are not objects are read as empty.
    """
    claims = decode_signed_payload(raw_body, public_key)
    data = claims.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("request"), dict):
        raise InvalidSignature("Invalid invocation payload")
    request = {**data["request"], "actionParams": _object(data["request"].get("actionParams"))}
    return request, _object(data.get("metadata"))


def handle_workflow_invocation(request: dict, metadata: dict) -> dict:
    """Immediate result for the platform; does not call Rise.ai."""
    now = iso_utc(datetime.now(timezone.utc))
    action_key = request.get("actionKey")
    if action_key == ACTION_CREATE_GIFT_CARD:
        params = _object(request.get("actionParams"))
        return {
            "status": "accepted",
            "action": "create-gift-card",
            "message": "Gift card creation request accepted",
            "requestInfo": {
                "recipient": {"name": params.get("name"), "email": params.get("email")},
                "amount": params.get("amount", "50.00"),
                "currency": params.get("currency", "USD"),
                "executionIdentifier": request.get("executionIdentifier"),
            },
            "timestamp": now,
        }

    logger.info("Unknown workflow action: %s", action_key)
    return {
        "status": "error",
        "message": f"Unsupported workflow action: {action_key}",
        "timestamp": now,
    }


def _nested_id(body, key: str):
    if isinstance(body, dict) and isinstance(body.get(key), dict):
        return body[key].get("id")
    return None


async def create_gift_card_for_invocation(api: RiseApiClient, request: dict, metadata: dict) -> dict:
    """Create the gift card, then its recipient. Raises on any failure."""
    instance_id = _object(metadata).get("instanceId")
    if not isinstance(instance_id, str):
        instance_id = None
    params = _object(request.get("actionParams"))
    amount = params.get("amount", "50.00")
    currency = params.get("currency", "USD")
    name, email = params.get("name"), params.get("email")

    logger.info("Creating gift card for instance %s - Amount: %s %s", instance_id, amount, currency)
    payload = gift_card_payload(
        code=params.get("code"),
        initial_value=amount,
        currency=currency,
        source_info={"type": "MANUAL", "initiator": {"type": "APP", "id": config.CLIENT_ID}},
    )
    gift_card = await api.call("POST", "/v1/rise/gift-cards", instance_id, payload, operation="gift card creation")
    gift_card_id = _nested_id(gift_card, "giftCard")
    if not gift_card_id:
        raise GiftCardCreationError("Gift card creation failed - no ID returned")

    recipient_payload = {
        "recipient": {"name": name, "email": email, "giftCardId": gift_card_id},
        "sideEffects": {"skipNotifications": True},
    }
    recipient = await api.call("POST", "/v1/rise/recipients", instance_id, recipient_payload, operation="recipient creation")
    recipient_id = _nested_id(recipient, "recipient")
    if not recipient_id:
        raise GiftCardCreationError("Recipient creation failed - no ID returned")

    code = payload["giftCard"]["code"]
    logger.info("Gift card created successfully for instance %s (id=%s)", instance_id, gift_card_id)
    return {
        "status": "success",
        "action": "create-gift-card",
        "data": {
            "giftCardCode": code,
            "initialValue": amount,
            "currency": currency,
            "recipient": {"id": recipient_id, "name": name, "email": email},
            "giftCardId": gift_card_id,
        },
    }


async def run_create_gift_card(api: RiseApiClient, request: dict, metadata: dict) -> None:
    """Background wrapper: the invocation was already answered, so failures are only logged."""
    try:
        await create_gift_card_for_invocation(api, request, metadata)
    except RiseAppError as e:
        logger.error("Background gift card creation failed: %s", e.message)


@router.post("/rise/workflows/actions/v1/invoke")
async def invoke_action(
    request: Request,
    background_tasks: BackgroundTasks,
    api: RiseApiClient = Depends(get_rise_api),
    public_key=Depends(get_verification_key),
):
    raw_body = (await request.body()).decode("utf-8", errors="replace")
    try:
        action_request, metadata = verify_invocation(raw_body, public_key)
    except InvalidSignature:
        logger.warning("Workflow invocation failed: invalid signature or payload")
        return JSONResponse(
            status_code=400,
            content={"error": "invocation_failed", "message": "Invalid invocation signature or payload"},
        )

    logger.info("Workflow invocation: %s", action_request.get("actionKey"))
    result = handle_workflow_invocation(action_request, metadata)
    if action_request.get("actionKey") == ACTION_CREATE_GIFT_CARD:
        background_tasks.add_task(run_create_gift_card, api, action_request, metadata)
    return {"success": True, "result": result}
