import pytest

from langtrans.exceptions import InvalidLanguage
from langtrans.models.language import Language


@pytest.mark.parametrize(
    "code", ["en", "es", "fr", "de", "pt", "ja", "ko", "zh", "ar", "ru", "hi"]
)
def test_parse_supported_codes(code):
    assert Language.parse(code).value == code


@pytest.mark.parametrize("code", ["xx", "", "EN", "Ko", "en-US", "eng", " en"])
def test_parse_rejects_everything_else(code):
    with pytest.raises(InvalidLanguage) as exc_info:
        Language.parse(code)
    assert exc_info.value.code == code


def test_display_names():
    assert Language.EN.display_name == "English"
    assert Language.KO.display_name == "Korean"
    assert Language.ZH.display_name == "Chinese"


def test_every_language_has_a_display_name():
    for lang in Language:
        assert lang.display_name
