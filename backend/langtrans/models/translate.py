from pydantic import BaseModel, ConfigDict, Field

MAX_TEXT_LENGTH = 5000


class TranslateRequest(BaseModel):
    """Body of ``POST /api/translate``. Codes are validated by the handler."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")
    text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)
