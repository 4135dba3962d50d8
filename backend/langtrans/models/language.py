from enum import Enum

from langtrans.exceptions import InvalidLanguage


class Language(str, Enum):
    EN = "en"
    ES = "es"
    FR = "fr"
    DE = "de"
    PT = "pt"
    JA = "ja"
    KO = "ko"
    ZH = "zh"
    AR = "ar"
    RU = "ru"
    HI = "hi"

    @classmethod
    def parse(cls, code: str) -> "Language":
        """Return the language for ``code``. Matching is case-sensitive."""
        try:
            return cls(code)
        except ValueError:
            raise InvalidLanguage(code) from None

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Language.EN: "English",
    Language.ES: "Spanish",
    Language.FR: "French",
    Language.DE: "German",
    Language.PT: "Portuguese",
    Language.JA: "Japanese",
    Language.KO: "Korean",
    Language.ZH: "Chinese",
    Language.AR: "Arabic",
    Language.RU: "Russian",
    Language.HI: "Hindi",
}

SUPPORTED_CODES = ", ".join(lang.value for lang in Language)
