import logging
import threading
from functools import lru_cache

from fastapi import Cookie, Depends, HTTPException, Request

from langtrans.config import Settings
from langtrans.exceptions import ApiKeyError
from langtrans.models.api_keys import ApiKey
from langtrans.services.admin_sessions import AdminSession, AdminSessionStore
from langtrans.services.api_key_store import ApiKeyStore
from langtrans.services.login_guard import LoginGuard
from langtrans.services.translator import Translator
from langtrans.utils.text import mask_secret

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"

_init_lock = threading.Lock()
_translator_lock = threading.Lock()
_key_store: ApiKeyStore | None = None
_translator: Translator | None = None
_login_guard: LoginGuard | None = None
_session_store: AdminSessionStore | None = None


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_key_store() -> ApiKeyStore:
    global _key_store
    with _init_lock:
        if _key_store is None:
            _key_store = ApiKeyStore.load(get_settings().apikeys_path)
    return _key_store


def get_translator() -> Translator:
    global _translator
    with _translator_lock:
        if _translator is None:
            # torch/transformers are only imported once a model is needed
            from langtrans.services.model_loader import load_engine

            settings = get_settings()
            _translator = Translator(
                load_engine(settings), max_workers=settings.inference_workers
            )
    return _translator


def translator_loaded() -> bool:
    return _translator is not None


def shutdown_translator() -> None:
    global _translator
    with _translator_lock:
        if _translator is not None:
            _translator.shutdown()
            _translator = None


def get_login_guard() -> LoginGuard:
    global _login_guard
    with _init_lock:
        if _login_guard is None:
            settings = get_settings()
            _login_guard = LoginGuard(
                max_failures=settings.login_max_failures,
                lockout_seconds=settings.login_lockout_seconds,
            )
    return _login_guard


def get_session_store() -> AdminSessionStore:
    global _session_store
    with _init_lock:
        if _session_store is None:
            _session_store = AdminSessionStore(get_settings().session_ttl_seconds)
    return _session_store


def get_client_ip(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> str:
    """Source address used for login lockout.

    ``X-Forwarded-For`` is honoured only when the service is configured to
    sit behind a trusted proxy.
    """
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def verify_api_key(
    request: Request,
    store: ApiKeyStore = Depends(get_key_store),
) -> ApiKey:
    """FastAPI dependency: authenticate via API key in Authorization header.

    Unknown, expired and revoked keys all produce the same 401 so callers
    cannot tell them apart; the reason is logged.

    Raises:
        HTTPException 401 if the key is missing or unusable.
    """
    auth_header = request.headers.get("Authorization")

    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Missing or invalid Authorization header. Expected: Bearer <api_key>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    api_key = auth_header.removeprefix("Bearer ").strip()

    try:
        return store.validate(api_key)
    except ApiKeyError as e:
        logger.info("Rejected API key %s: %s", mask_secret(api_key), e.reason)
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired API key",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin_session(
    session: str | None = Cookie(default=None),
    sessions: AdminSessionStore = Depends(get_session_store),
) -> AdminSession:
    """FastAPI dependency: the caller's live admin session.

    Raises:
        HTTPException 401 if the session cookie is missing, unknown or expired.
    """
    admin_session = sessions.get(session) if session else None
    if admin_session is None:
        raise HTTPException(status_code=401, detail="Admin login required")
    return admin_session
