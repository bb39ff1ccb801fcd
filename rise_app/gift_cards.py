"""
Gift card payload helpers shared by the example API and workflow actions.
"""
import secrets
from datetime import datetime, timedelta, timezone

_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
_CODE_LENGTH = 16
_DEFAULT_VALIDITY = timedelta(days=365)


def generate_gift_card_code() -> str:
    """Random 16-character gift card code (A-Z, 0-9)."""
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_LENGTH))


def iso_utc(dt: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision and a Z suffix (Rise.ai date format)."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def default_expiration_date() -> str:
    return iso_utc(datetime.now(timezone.utc) + _DEFAULT_VALIDITY)


def gift_card_payload(
    *,
    code: str | None,
    initial_value: str,
    currency: str,
    source_info: dict,
    expiration_date: str | None = None,
) -> dict:
    return {
        "giftCard": {
            "code": code or generate_gift_card_code(),
            "initialValue": initial_value,
            "sourceInfo": source_info,
            "currency": currency,
            "expirationDate": expiration_date or default_expiration_date(),
        }
    }
