import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from langtrans.dependencies import get_translator, verify_api_key
from langtrans.exceptions import InferenceError, InputTooLarge, InvalidLanguage
from langtrans.models.api_keys import ApiKey
from langtrans.models.language import SUPPORTED_CODES, Language
from langtrans.models.translate import MAX_TEXT_LENGTH, TranslateRequest
from langtrans.services.translator import Translator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["translate"])


async def _translate(
    translator: Translator,
    api_key: ApiKey,
    source_code: str,
    target_code: str,
    text: str,
) -> PlainTextResponse:
    try:
        source = Language.parse(source_code)
        target = Language.parse(target_code)
    except InvalidLanguage as e:
        raise HTTPException(
            status_code=400,
            detail=f"{e.message}. Supported: {SUPPORTED_CODES}",
        )

    try:
        result = await translator.translate(source, target, text)
    except InputTooLarge as e:
        raise HTTPException(status_code=400, detail=e.message)
    except InferenceError:
        logger.exception("Translation failed for key %s", api_key.key_prefix)
        raise HTTPException(status_code=500, detail="Internal server error")

    return PlainTextResponse(result)


@router.get("/translate", response_class=PlainTextResponse)
async def translate_get(
    source: str = Query(..., alias="from"),
    target: str = Query(..., alias="to"),
    text: str = Query(..., min_length=1, max_length=MAX_TEXT_LENGTH),
    api_key: ApiKey = Depends(verify_api_key),
    translator: Translator = Depends(get_translator),
):
    """Translate ``text``. Authenticate with: Authorization: Bearer <api_key>"""
    return await _translate(translator, api_key, source, target, text)


@router.post("/translate", response_class=PlainTextResponse)
async def translate_post(
    request: TranslateRequest,
    api_key: ApiKey = Depends(verify_api_key),
    translator: Translator = Depends(get_translator),
):
    """Same as GET with a JSON body ``{from, to, text}``."""
    return await _translate(translator, api_key, request.source, request.target, request.text)
