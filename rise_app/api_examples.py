"""
Installation diagnostics and example Rise.ai API calls.

Each example resolves a valid access token for the instance and forwards a fixed-shape
body to the matching Rise.ai endpoint. Failures use the JSON envelope
{error, message, details}; details may carry the Rise.ai response body.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from rise_app import config
from rise_app.dependencies import get_installation_store, get_rise_api
from rise_app.gift_cards import gift_card_payload, iso_utc
from rise_app.installation_store import InstallationStore, now_ms
from rise_app.rise_api import RiseApiClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api")
security = HTTPBearer(auto_error=False)

# Rise.ai keeps workflow idempotency keys for 7 days
EVENT_IDEMPOTENCY_TTL_MS = "604800000"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GiftCardIn(_CamelModel):
    code: str | None = None
    initial_value: str = Field("50.00", alias="initialValue")
    currency: str = "USD"
    expiration_date: str | None = Field(None, alias="expirationDate")


class GiftCardSearchIn(_CamelModel):
    email: str | None = None
    filters: list[dict[str, Any]] = Field(default_factory=list)


class WalletIn(_CamelModel):
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    email: str | None = None
    phone: str | None = None
    source_customer_id: str | None = Field(None, alias="sourceCustomerId")
    initial_value: str = Field("0.00", alias="initialValue")
    currency: str = "USD"


class WalletQueryIn(_CamelModel):
    query: dict[str, Any] = Field(default_factory=dict)


class WorkflowEventIn(_CamelModel):
    trigger_key: str | None = Field(None, alias="triggerKey")
    payload: dict[str, Any] = Field(default_factory=dict)
    idempotency_key: str | None = Field(None, alias="idempotencyKey")


def require_operator(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> None:
    """Bearer RISE_ADMIN_TOKEN when configured; open otherwise (local development)."""
    if config.ADMIN_TOKEN is None:
        return
    if credentials is None or not secrets.compare_digest(credentials.credentials, config.ADMIN_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": "Operator token required"},
            headers={"WWW-Authenticate": "Bearer"},
        )


def _ok(endpoint: str, data: Any) -> dict:
    return {"success": True, "endpoint": endpoint, "data": data}


@router.get("/installations", dependencies=[Depends(require_operator)])
def list_installations(store: InstallationStore = Depends(get_installation_store)):
    """Stored installations with expiry status. Never returns tokens."""
    now = now_ms()
    installations = [
        {
            "instanceId": r.instance_id,
            "created_at": iso_utc(datetime.fromtimestamp(r.created_at / 1000, tz=timezone.utc)),
            "expires_at": iso_utc(datetime.fromtimestamp(r.expires_at / 1000, tz=timezone.utc)),
            "is_expired": r.is_expired(now),
        }
        for r in store.all()
    ]
    return {"total": len(installations), "installations": installations}


@router.get("/example/account/{instance_id}")
async def account(instance_id: str, api: RiseApiClient = Depends(get_rise_api)):
    endpoint = "/v1/rise/accounts"
    data = await api.call("GET", endpoint, instance_id, operation="account information")
    return _ok(endpoint, data)


@router.get("/example/sales-channels/{instance_id}")
async def sales_channels(instance_id: str, api: RiseApiClient = Depends(get_rise_api)):
    endpoint = "/v1/rise/sales-channels"
    data = await api.call("GET", endpoint, instance_id, operation="sales channels")
    return _ok(endpoint, data)


@router.post("/example/gift-cards/search/{instance_id}")
async def search_gift_cards(
    instance_id: str,
    body: GiftCardSearchIn | None = None,
    api: RiseApiClient = Depends(get_rise_api),
):
    body = body or GiftCardSearchIn()
    filters = list(body.filters)
    if body.email:
        filters.insert(0, {"field": "recipient.email", "operator": "eq", "value": body.email})
    endpoint = "/v1/rise/gift-cards/search"
    data = await api.call("POST", endpoint, instance_id, {"query": {"filters": filters}}, operation="gift card search")
    return _ok(endpoint, data)


@router.post("/example/gift-cards/{instance_id}")
async def create_gift_card(
    instance_id: str,
    body: GiftCardIn | None = None,
    api: RiseApiClient = Depends(get_rise_api),
):
    body = body or GiftCardIn()
    payload = gift_card_payload(
        code=body.code,
        initial_value=body.initial_value,
        currency=body.currency,
        expiration_date=body.expiration_date,
        source_info={"type": "MANUAL", "sourceTenantId": instance_id, "sourceChannelId": instance_id},
    )
    endpoint = "/v1/rise/gift-cards"
    data = await api.call("POST", endpoint, instance_id, payload, operation="gift card creation")
    return _ok(endpoint, data)


@router.post("/example/wallets/query/{instance_id}")
async def query_wallets(
    instance_id: str,
    body: WalletQueryIn | None = None,
    api: RiseApiClient = Depends(get_rise_api),
):
    body = body or WalletQueryIn()
    endpoint = "/v1/rise/wallets/query"
    data = await api.call("POST", endpoint, instance_id, {"query": body.query}, operation="wallet query")
    return _ok(endpoint, data)


@router.post("/example/wallets/{instance_id}")
async def create_wallet(
    instance_id: str,
    body: WalletIn | None = None,
    api: RiseApiClient = Depends(get_rise_api),
):
    body = body or WalletIn()
    payload = {
        "customerReference": {
            "sourceChannelId": instance_id,
            "sourceTenantId": instance_id,
            "sourceCustomerId": body.source_customer_id or f"customer_{now_ms()}",
            "firstName": body.first_name,
            "lastName": body.last_name,
            "phone": body.phone,
            "email": body.email,
        },
        "initialValue": body.initial_value,
        "currency": body.currency,
    }
    endpoint = "/v1/rise/wallets"
    data = await api.call("POST", endpoint, instance_id, payload, operation="wallet creation")
    return _ok(endpoint, data)


@router.post("/example/workflows/events/{instance_id}")
async def report_workflow_event(
    instance_id: str,
    body: WorkflowEventIn | None = None,
    api: RiseApiClient = Depends(get_rise_api),
):
    body = body or WorkflowEventIn()
    payload = {
        "triggerKey": body.trigger_key,
        "payload": body.payload,
        "idempotency": {
            "key": body.idempotency_key or f"event_{now_ms()}",
            "ttlInMilliseconds": EVENT_IDEMPOTENCY_TTL_MS,
        },
    }
    endpoint = "/workflows/v1/events/report"
    data = await api.call("POST", endpoint, instance_id, payload, operation="workflow event reporting")
    return _ok(endpoint, data)
