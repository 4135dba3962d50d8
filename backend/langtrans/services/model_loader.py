import logging
from typing import Any

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer

from langtrans.config import Settings
from langtrans.services.inference import InferenceEngine, StepOutput, resolve_eos_token_ids

logger = logging.getLogger(__name__)


class TransformersBackend:
    """Prefill/step adapter around a Hugging Face causal LM.

    ``past_key_values`` returned by the model is passed back on the next
    step; the model appends the new position to it instead of recomputing
    the prefix.
    """

    def __init__(self, model, device: torch.device):
        self.model = model
        self.device = device

    @torch.inference_mode()
    def prefill(self, input_ids: list[int]) -> StepOutput:
        ids = torch.tensor([input_ids], dtype=torch.long, device=self.device)
        outputs = self.model(input_ids=ids, use_cache=True)
        return StepOutput(self._last_logits(outputs.logits), outputs.past_key_values)

    @torch.inference_mode()
    def step(self, token_id: int, cache: Any) -> StepOutput:
        ids = torch.tensor([[token_id]], dtype=torch.long, device=self.device)
        outputs = self.model(input_ids=ids, past_key_values=cache, use_cache=True)
        return StepOutput(self._last_logits(outputs.logits), outputs.past_key_values)

    @staticmethod
    def _last_logits(logits: torch.Tensor):
        # (batch=1, seq, vocab) -> (vocab,)
        return logits[0, -1].float().cpu().numpy()


def resolve_device(name: str) -> torch.device:
    if name == "auto":
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    return torch.device(name)


def load_engine(settings: Settings) -> InferenceEngine:
    """Load tokenizer and model from ``settings.model_path``."""
    device = resolve_device(settings.device)
    torch.set_num_threads(settings.intra_op_threads)

    logger.info("Loading model from %s on %s", settings.model_path, device)
    tokenizer = AutoTokenizer.from_pretrained(settings.model_path)
    model = AutoModelForCausalLM.from_pretrained(settings.model_path, torch_dtype="auto")
    model.to(device)
    model.eval()

    eos_token_ids = resolve_eos_token_ids(tokenizer)
    logger.info(
        "Model loaded: %s, %d layers, eos_token_ids=%s",
        type(model).__name__,
        getattr(model.config, "num_hidden_layers", -1),
        sorted(eos_token_ids),
    )

    return InferenceEngine(
        tokenizer,
        TransformersBackend(model, device),
        eos_token_ids,
        max_new_tokens=settings.max_new_tokens,
        max_input_tokens=settings.max_input_tokens,
    )
