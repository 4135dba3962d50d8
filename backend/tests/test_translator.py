import asyncio
import threading
import time

from langtrans.models.language import Language
from langtrans.services.translator import Translator
from tests.conftest import ScriptedBackend, make_engine


class _ObservingBackend(ScriptedBackend):
    """Records the thread each prefill runs on and how many overlap."""

    def __init__(self, reply: str = "Hola"):
        super().__init__(reply)
        self.threads: list[str] = []
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def prefill(self, input_ids):
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.threads.append(threading.current_thread().name)
        time.sleep(0.02)
        try:
            return super().prefill(input_ids)
        finally:
            with self._guard:
                self.active -= 1


def test_translate_runs_off_the_event_loop():
    backend = _ObservingBackend()
    translator = Translator(make_engine(backend))
    try:
        result = asyncio.run(translator.translate(Language.EN, Language.ES, "Hello"))
    finally:
        translator.shutdown()

    assert result == "Hola"
    assert backend.threads[0].startswith("inference")


def test_prompt_carries_languages_and_text():
    backend = ScriptedBackend()
    translator = Translator(make_engine(backend))
    try:
        asyncio.run(translator.translate(Language.DE, Language.JA, "Guten Tag"))
    finally:
        translator.shutdown()

    prompt = "".join(chr(t) for t in backend.prefill_calls[0])
    assert "from German to Japanese" in prompt
    assert "Guten Tag" in prompt


def test_concurrent_requests_never_overlap():
    backend = _ObservingBackend()
    # More workers than the engine allows at once
    translator = Translator(make_engine(backend), max_workers=4)

    async def burst():
        return await asyncio.gather(
            *(translator.translate(Language.EN, Language.FR, f"text {i}") for i in range(6))
        )

    try:
        results = asyncio.run(burst())
    finally:
        translator.shutdown()

    assert results == ["Hola"] * 6
    assert backend.max_active == 1
    assert len(backend.threads) == 6
