import os
from datetime import datetime, timedelta, timezone

# Settings are read when langtrans.main is imported
os.environ.setdefault("LANGTRANS_ADMIN_ID", "admin")
os.environ.setdefault("LANGTRANS_ADMIN_PASSWORD", "s3cret-password")
os.environ.setdefault("LANGTRANS_PRELOAD_MODEL", "false")

import numpy as np
import pytest
from fastapi.testclient import TestClient

from langtrans.config import Settings
from langtrans.dependencies import (
    get_key_store,
    get_login_guard,
    get_session_store,
    get_settings,
    get_translator,
)
from langtrans.main import app
from langtrans.services.admin_sessions import AdminSessionStore
from langtrans.services.api_key_store import ApiKeyStore
from langtrans.services.inference import InferenceEngine, StepOutput
from langtrans.services.login_guard import LoginGuard
from langtrans.services.translator import Translator

ADMIN_ID = "admin"
ADMIN_PASSWORD = "s3cret-password"

VOCAB_SIZE = 256
EOS_ID = 0


# ---------------------------------------------------------------------------
# Model stubs
# ---------------------------------------------------------------------------


class ByteTokenizer:
    """One token per character (code points above 255 collapse to 255)."""

    def encode(self, text: str, add_special_tokens: bool = False) -> list[int]:
        return [min(ord(c), VOCAB_SIZE - 1) for c in text]

    def decode(self, token_ids: list[int], skip_special_tokens: bool = True) -> str:
        return "".join(chr(t) for t in token_ids if not (skip_special_tokens and t == EOS_ID))

    def get_vocab(self) -> dict[str, int]:
        return {"<|im_end|>": EOS_ID}


def one_hot(token_id: int) -> np.ndarray:
    logits = np.zeros(VOCAB_SIZE, dtype=np.float32)
    logits[token_id] = 1.0
    return logits


class ScriptedBackend:
    """Emits ``reply`` one character per step, then EOS.

    The cache is a list of every token the model has seen; ``step`` appends
    to it in place.
    """

    def __init__(self, reply: str = "Hola", terminate: bool = True):
        self.reply = [ord(c) for c in reply]
        self.terminate = terminate
        self.prefill_calls: list[list[int]] = []
        self.step_calls: list[tuple[int, int]] = []  # (token fed, cache length before)

    def _next(self, generated: int) -> int:
        if generated < len(self.reply):
            return self.reply[generated]
        if self.terminate:
            return EOS_ID
        return self.reply[-1]

    def prefill(self, input_ids: list[int]) -> StepOutput:
        self.prefill_calls.append(list(input_ids))
        cache = {"tokens": list(input_ids), "generated": 0}
        return StepOutput(one_hot(self._next(0)), cache)

    def step(self, token_id: int, cache) -> StepOutput:
        self.step_calls.append((token_id, len(cache["tokens"])))
        cache["tokens"].append(token_id)
        cache["generated"] += 1
        return StepOutput(one_hot(self._next(cache["generated"])), cache)


class FailingBackend(ScriptedBackend):
    """Raises on the first ``failures`` forward passes, then behaves."""

    def __init__(self, reply: str = "Hola", failures: int = 1):
        super().__init__(reply)
        self.failures = failures

    def prefill(self, input_ids: list[int]) -> StepOutput:
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("CUDA error: device-side assert triggered")
        return super().prefill(input_ids)


def make_engine(backend=None, **kwargs) -> InferenceEngine:
    return InferenceEngine(
        ByteTokenizer(),
        backend or ScriptedBackend(),
        {EOS_ID},
        **kwargs,
    )


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def key_store(tmp_path) -> ApiKeyStore:
    return ApiKeyStore(tmp_path / "api_keys.json")


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend("Hola")


@pytest.fixture
def engine(backend) -> InferenceEngine:
    return make_engine(backend, max_new_tokens=32)


@pytest.fixture
def translator(engine):
    t = Translator(engine)
    yield t
    t.shutdown()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_id=ADMIN_ID,
        admin_password=ADMIN_PASSWORD,
        trust_forwarded_for=True,
        preload_model=False,
    )


@pytest.fixture
def client(key_store, translator, clock, settings):
    """FastAPI test client with in-memory collaborators."""
    guard = LoginGuard(max_failures=5, lockout_seconds=1800, clock=clock)
    sessions = AdminSessionStore(ttl_seconds=3600, clock=clock)

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_key_store] = lambda: key_store
    app.dependency_overrides[get_translator] = lambda: translator
    app.dependency_overrides[get_login_guard] = lambda: guard
    app.dependency_overrides[get_session_store] = lambda: sessions
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def api_key(key_store) -> str:
    return key_store.create(label="tests").id


@pytest.fixture
def auth_headers(api_key) -> dict:
    return {"Authorization": f"Bearer {api_key}"}


def session_cookie(resp) -> str:
    """Pull the session token out of a login response's Set-Cookie header."""
    return resp.headers["set-cookie"].split(";", 1)[0].split("=", 1)[1]


def admin_login(client, ip: str = "10.0.0.1") -> dict:
    """Log in and return headers carrying the session cookie."""
    resp = client.post(
        "/admin/login",
        json={"username": ADMIN_ID, "password": ADMIN_PASSWORD},
        headers={"X-Forwarded-For": ip},
    )
    assert resp.status_code == 200
    return {"Cookie": f"session={session_cookie(resp)}"}
