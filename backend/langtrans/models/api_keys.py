import hashlib
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

MAX_TTL_SECONDS = 100 * 365 * 24 * 3600


class KeyStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


# --- Persisted records ---


class ApiKey(BaseModel):
    """One API key as stored in the key file.

    ``id`` is the secret the caller presents as a bearer token.
    """

    id: str
    label: str = ""
    created_at: datetime
    expires_at: datetime | None = None
    revoked: bool = False

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def status(self, now: datetime | None = None) -> KeyStatus:
        if self.revoked:
            return KeyStatus.REVOKED
        if self.is_expired(now):
            return KeyStatus.EXPIRED
        return KeyStatus.ACTIVE

    @property
    def fingerprint(self) -> str:
        """Non-secret handle the admin console uses to address a key."""
        return hashlib.sha256(self.id.encode()).hexdigest()

    @property
    def key_prefix(self) -> str:
        return self.id[:12] + "..."


class ApiKeyFile(BaseModel):
    keys: list[ApiKey] = []


# --- Admin key management models ---


class ApiKeyCreateRequest(BaseModel):
    label: str = Field("", max_length=100)
    ttl_seconds: int | None = Field(None, gt=0, le=MAX_TTL_SECONDS)


class ApiKeyCreateResponse(BaseModel):
    """Full key is returned once, on creation. It cannot be retrieved again."""

    key: str
    key_prefix: str
    fingerprint: str
    label: str
    created_at: datetime
    expires_at: datetime | None


class ApiKeyItem(BaseModel):
    fingerprint: str
    key_prefix: str
    label: str
    created_at: datetime
    expires_at: datetime | None
    revoked: bool
    status: KeyStatus

    @classmethod
    def from_record(cls, record: ApiKey) -> "ApiKeyItem":
        return cls(
            fingerprint=record.fingerprint,
            key_prefix=record.key_prefix,
            label=record.label,
            created_at=record.created_at,
            expires_at=record.expires_at,
            revoked=record.revoked,
            status=record.status(),
        )


class ApiKeyListResponse(BaseModel):
    keys: list[ApiKeyItem]


class ApiKeyRevokeResponse(BaseModel):
    fingerprint: str
    changed: bool
