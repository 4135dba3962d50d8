def mask_secret(secret: str) -> str:
    """Mask a secret for logs: first 6 characters + '****'."""
    if len(secret) <= 8:
        return "****"
    return secret[:6] + "****"


def remove_markers(text: str, markers: tuple[str, ...]) -> str:
    """Remove every marker from text until none remain.

    Repeats so that fragments like '<|im_<|im_end|>start|>' cannot
    reassemble a marker after one pass.
    """
    previous = None
    while previous != text:
        previous = text
        for marker in markers:
            text = text.replace(marker, "")
    return text
