import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from langtrans.models.language import Language
from langtrans.services.inference import InferenceEngine
from langtrans.services.prompt import build_translation_prompt

logger = logging.getLogger(__name__)


class Translator:
    """Runs translations on a dedicated worker pool.

    Generation is long-running and blocking, so it never runs on the event
    loop. Requests queue on the engine lock; if the caller goes away while
    queued or running, the generation still completes and the result is
    dropped.
    """

    def __init__(self, engine: InferenceEngine, max_workers: int = 1):
        self.engine = engine
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="inference"
        )

    async def translate(self, source: Language, target: Language, text: str) -> str:
        prompt = build_translation_prompt(source, target, text)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(self._executor, self.engine.translate, prompt)
        logger.info(
            "Translated %d chars -> %d chars (%s->%s)",
            len(text), len(result), source.value, target.value,
        )
        return result

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
