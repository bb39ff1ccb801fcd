"""
Installation store: instance_id -> token record.

One record per instance_id, last writer wins. Stale records are kept until the next
use or until an AppRemoved webhook deletes them; there is no TTL sweep.
The stores do not serialize concurrent refreshes of one instance_id; the token
manager de-duplicates in-flight refreshes before anything is written here.
"""
import time
from dataclasses import dataclass, replace
from typing import Protocol

from sqlalchemy.orm import sessionmaker

from rise_app.models import Installation


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class InstallationRecord:
    instance_id: str
    access_token: str
    expires_at: int  # epoch ms
    created_at: int  # epoch ms of the first successful exchange

    def is_expired(self, now: int, margin_ms: int = 0) -> bool:
        """Expired when expires_at is at or before now (+ margin). expires_at == now counts as expired."""
        return self.expires_at <= now + margin_ms

    def with_token(self, access_token: str, expires_at: int) -> "InstallationRecord":
        return replace(self, access_token=access_token, expires_at=expires_at)


class InstallationStore(Protocol):
    def get(self, instance_id: str) -> InstallationRecord | None: ...

    def put(self, record: InstallationRecord) -> None: ...

    def delete(self, instance_id: str) -> None: ...

    def all(self) -> list[InstallationRecord]: ...


class MemoryInstallationStore:
    """Volatile process-memory store (default)."""

    def __init__(self) -> None:
        self._records: dict[str, InstallationRecord] = {}

    def get(self, instance_id: str) -> InstallationRecord | None:
        return self._records.get(instance_id)

    def put(self, record: InstallationRecord) -> None:
        self._records[record.instance_id] = record

    def delete(self, instance_id: str) -> None:
        self._records.pop(instance_id, None)

    def all(self) -> list[InstallationRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)


class SqlInstallationStore:
    """SQLAlchemy-backed store; one row per instance_id."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _to_record(row: Installation) -> InstallationRecord:
        return InstallationRecord(
            instance_id=row.instance_id,
            access_token=row.access_token,
            expires_at=row.expires_at,
            created_at=row.created_at,
        )

    def get(self, instance_id: str) -> InstallationRecord | None:
        with self._session_factory() as db:
            row = db.get(Installation, instance_id)
            return self._to_record(row) if row else None

    def put(self, record: InstallationRecord) -> None:
        with self._session_factory() as db:
            db.merge(
                Installation(
                    instance_id=record.instance_id,
                    access_token=record.access_token,
                    expires_at=record.expires_at,
                    created_at=record.created_at,
                )
            )
            db.commit()

    def delete(self, instance_id: str) -> None:
        with self._session_factory() as db:
            row = db.get(Installation, instance_id)
            if row is not None:
                db.delete(row)
                db.commit()

    def all(self) -> list[InstallationRecord]:
        with self._session_factory() as db:
            rows = db.query(Installation).order_by(Installation.created_at).all()
            return [self._to_record(r) for r in rows]
