import logging
import math
import secrets
from datetime import timedelta

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response

from langtrans.config import Settings
from langtrans.dependencies import (
    SESSION_COOKIE,
    get_client_ip,
    get_key_store,
    get_login_guard,
    get_session_store,
    get_settings,
    require_admin_session,
)
from langtrans.exceptions import LoginLocked, StoreError
from langtrans.models.admin import DashboardResponse, LoginRequest, LoginResponse
from langtrans.models.api_keys import (
    ApiKeyCreateRequest,
    ApiKeyCreateResponse,
    ApiKeyItem,
    ApiKeyListResponse,
    ApiKeyRevokeResponse,
)
from langtrans.services.admin_sessions import AdminSession, AdminSessionStore
from langtrans.services.api_key_store import ApiKeyStore
from langtrans.services.login_guard import LoginGuard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _credentials_match(request: LoginRequest, settings: Settings) -> bool:
    # Compare both fields every time so timing does not reveal which one failed
    user_ok = secrets.compare_digest(request.username.encode(), settings.admin_id.encode())
    password_ok = secrets.compare_digest(
        request.password.encode(), settings.admin_password.encode()
    )
    return user_ok and password_ok


def _set_session_cookie(response: Response, session: AdminSession, max_age: int) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        session.token,
        max_age=max_age,
        path="/admin",
        httponly=True,
        samesite="strict",
    )


# ------------------------------------------------------------------
# Login / logout
# ------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    response: Response,
    ip: str = Depends(get_client_ip),
    settings: Settings = Depends(get_settings),
    guard: LoginGuard = Depends(get_login_guard),
    sessions: AdminSessionStore = Depends(get_session_store),
):
    """Start an admin session.

    A locked-out IP gets 429 with ``Retry-After`` (seconds until the lock
    lifts), not 401/403, so clients can tell a lockout from bad credentials.
    Correct credentials are refused while the lock holds.
    """
    try:
        guard.check(ip)
    except LoginLocked as e:
        retry_after = math.ceil(e.retry_after.total_seconds())
        raise HTTPException(
            status_code=429,
            detail="Too many failed attempts. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )

    if not _credentials_match(request, settings):
        guard.record_failure(ip)
        logger.warning("Failed admin login from %s", ip)
        raise HTTPException(status_code=401, detail="Invalid username or password")

    guard.record_success(ip)
    session = sessions.create()
    _set_session_cookie(response, session, settings.session_ttl_seconds)
    logger.info("Admin logged in from %s", ip)
    return LoginResponse(expires_at=session.expires_at)


@router.post("/logout")
async def logout(
    response: Response,
    session: str | None = Cookie(default=None),
    sessions: AdminSessionStore = Depends(get_session_store),
):
    if session:
        sessions.remove(session)
    response.delete_cookie(SESSION_COOKIE, path="/admin", httponly=True, samesite="strict")
    return {"status": "ok"}


# ------------------------------------------------------------------
# Dashboard and key management
# ------------------------------------------------------------------


@router.get("", response_model=DashboardResponse)
async def dashboard(
    admin: AdminSession = Depends(require_admin_session),
    store: ApiKeyStore = Depends(get_key_store),
):
    return DashboardResponse(
        keys=[ApiKeyItem.from_record(k) for k in store.list_keys()],
        session_expires_at=admin.expires_at,
    )


@router.get("/keys", response_model=ApiKeyListResponse)
async def list_api_keys(
    _admin: AdminSession = Depends(require_admin_session),
    store: ApiKeyStore = Depends(get_key_store),
):
    """List all API keys. Secrets are never included."""
    return ApiKeyListResponse(keys=[ApiKeyItem.from_record(k) for k in store.list_keys()])


@router.post("/keys", response_model=ApiKeyCreateResponse, status_code=201)
def create_api_key(
    request: ApiKeyCreateRequest,
    _admin: AdminSession = Depends(require_admin_session),
    store: ApiKeyStore = Depends(get_key_store),
):
    """Create a new API key. The full key is returned once; store it securely."""
    ttl = timedelta(seconds=request.ttl_seconds) if request.ttl_seconds else None
    try:
        record = store.create(ttl=ttl, label=request.label)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return ApiKeyCreateResponse(
        key=record.id,
        key_prefix=record.key_prefix,
        fingerprint=record.fingerprint,
        label=record.label,
        created_at=record.created_at,
        expires_at=record.expires_at,
    )


@router.post("/keys/{fingerprint}/revoke", response_model=ApiKeyRevokeResponse)
def revoke_api_key(
    fingerprint: str,
    _admin: AdminSession = Depends(require_admin_session),
    store: ApiKeyStore = Depends(get_key_store),
):
    """Revoke an API key. Revoking an already revoked key is a no-op."""
    record = store.find_by_fingerprint(fingerprint)
    if record is None:
        raise HTTPException(status_code=404, detail="API key not found")

    try:
        changed = store.revoke(record.id)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return ApiKeyRevokeResponse(fingerprint=fingerprint, changed=changed)
