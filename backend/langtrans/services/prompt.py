from langtrans.models.language import Language
from langtrans.utils.text import remove_markers

TURN_START = "<|im_start|>"
TURN_END = "<|im_end|>"
END_OF_TEXT = "<|endoftext|>"

CONTROL_MARKERS = (TURN_START, TURN_END, END_OF_TEXT)

# ChatML layout the served model was tuned on.
PROMPT_TEMPLATE = (
    f"{TURN_START}system\n"
    f"You are a professional translator.{TURN_END}\n"
    f"{TURN_START}user\n"
    "Translate the following text from {source} to {target}. "
    "Provide only the translation without any explanation.\n\n"
    f"{{text}}{TURN_END}\n"
    f"{TURN_START}assistant\n"
)


def build_translation_prompt(source: Language, target: Language, text: str) -> str:
    """Render the translation prompt.

    Control markers are stripped from the caller's text first so it cannot
    open or close chat turns of its own.
    """
    return PROMPT_TEMPLATE.format(
        source=source.display_name,
        target=target.display_name,
        text=remove_markers(text, CONTROL_MARKERS),
    )


def extract_answer(raw: str) -> str:
    """Pull the assistant's answer out of decoded model output."""
    answer = raw.split(TURN_END, 1)[0]
    answer = remove_markers(answer, CONTROL_MARKERS)
    if answer.startswith("assistant\n"):
        answer = answer.removeprefix("assistant\n")
    return answer.strip()
