"""Greedy autoregressive generation over a single loaded model.

The engine is split in two:

- a *backend* that knows how to run the model: ``prefill`` over the whole
  prompt, then ``step`` with one new token plus the key/value cache from the
  previous call (the backend extends that cache in place);
- the loop driver here, which picks tokens greedily and decides when to stop
  (end-of-sequence id or the output-token budget).

Only one generation runs at a time: the engine holds a lock for the whole
``translate`` call because the model and its cache are mutated while
decoding.
"""

import logging
import threading
import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np

from langtrans.exceptions import InferenceError, InputTooLarge, TokenizationError
from langtrans.services.prompt import END_OF_TEXT, TURN_END, extract_answer

logger = logging.getLogger(__name__)

DEFAULT_MAX_NEW_TOKENS = 512
DEFAULT_MAX_INPUT_TOKENS = 4096

# Turn terminators used by the chat templates we serve
EOS_TOKENS = (TURN_END, "<end_of_turn>", END_OF_TEXT)


@dataclass
class StepOutput:
    logits: Any  # next-token scores for the last position, shape (vocab,)
    cache: Any


class DecoderBackend(Protocol):
    def prefill(self, input_ids: list[int]) -> StepOutput: ...

    def step(self, token_id: int, cache: Any) -> StepOutput: ...


class Tokenizer(Protocol):
    def encode(self, text: str, add_special_tokens: bool = ...) -> list[int]: ...

    def decode(self, token_ids: list[int], skip_special_tokens: bool = ...) -> str: ...


def greedy_token(logits) -> int:
    return int(np.argmax(np.asarray(logits)))


def decode_step(backend: DecoderBackend, cache: Any, token_id: int) -> tuple[int, Any]:
    """Feed one token through the model and pick the next one."""
    output = backend.step(token_id, cache)
    return greedy_token(output.logits), output.cache


def generate_tokens(
    backend: DecoderBackend,
    input_ids: list[int],
    eos_token_ids: Iterable[int],
    max_new_tokens: int,
) -> Iterator[int]:
    """Yield generated token ids until end-of-sequence or the budget runs out.

    The end-of-sequence token itself is not yielded. No forward pass is run
    past the last token that can be emitted.
    """
    eos = frozenset(eos_token_ids)
    first = backend.prefill(input_ids)
    token, cache = greedy_token(first.logits), first.cache

    for produced in range(1, max_new_tokens + 1):
        if token in eos:
            return
        yield token
        if produced == max_new_tokens:
            return
        token, cache = decode_step(backend, cache, token)


def resolve_eos_token_ids(tokenizer) -> set[int]:
    """End-of-sequence ids for a Hugging Face style tokenizer."""
    vocab = tokenizer.get_vocab()
    ids = {vocab[t] for t in EOS_TOKENS if t in vocab}
    if getattr(tokenizer, "eos_token_id", None) is not None:
        ids.add(tokenizer.eos_token_id)
    if not ids:
        raise ValueError("Tokenizer defines no end-of-sequence token")
    return ids


class InferenceEngine:
    def __init__(
        self,
        tokenizer: Tokenizer,
        backend: DecoderBackend,
        eos_token_ids: Iterable[int],
        max_new_tokens: int = DEFAULT_MAX_NEW_TOKENS,
        max_input_tokens: int = DEFAULT_MAX_INPUT_TOKENS,
    ):
        self.tokenizer = tokenizer
        self.backend = backend
        self.eos_token_ids = frozenset(eos_token_ids)
        self.max_new_tokens = max_new_tokens
        self.max_input_tokens = max_input_tokens
        self._lock = threading.Lock()

    def translate(self, prompt: str) -> str:
        """Run greedy generation for ``prompt`` and return the answer text.

        Blocks for the duration of the generation; call it from a worker
        thread, never from the event loop.

        Raises:
            InputTooLarge: prompt exceeds ``max_input_tokens``.
            TokenizationError: prompt or output could not be (de)tokenized.
            InferenceError: the model forward pass failed.
        """
        with self._lock:
            started = time.perf_counter()
            input_ids = self._encode(prompt)

            try:
                output_ids = list(
                    generate_tokens(
                        self.backend,
                        input_ids,
                        self.eos_token_ids,
                        self.max_new_tokens,
                    )
                )
            except Exception as e:
                logger.exception("Forward pass failed (%d input tokens)", len(input_ids))
                raise InferenceError("Model forward pass failed") from e

            if len(output_ids) >= self.max_new_tokens:
                logger.warning(
                    "Generation stopped at the %d-token budget; returning partial output",
                    self.max_new_tokens,
                )

            try:
                raw = self.tokenizer.decode(output_ids, skip_special_tokens=True)
            except Exception as e:
                raise TokenizationError("Failed to decode model output") from e

            logger.info(
                "Generated %d tokens from %d input tokens in %.1fms",
                len(output_ids), len(input_ids),
                (time.perf_counter() - started) * 1000,
            )

        return extract_answer(raw)

    def _encode(self, prompt: str) -> list[int]:
        try:
            input_ids = list(self.tokenizer.encode(prompt, add_special_tokens=False))
        except Exception as e:
            raise TokenizationError("Failed to tokenize prompt") from e

        if not input_ids:
            raise TokenizationError("Prompt produced no tokens")
        if len(input_ids) > self.max_input_tokens:
            raise InputTooLarge(len(input_ids), self.max_input_tokens)
        return input_ids
