from typing import Dict, List, Optional

from pydantic import BaseModel, Field

SOURCE_LANGUAGE_CODE = "en"


class TranslationMemoryItem(BaseModel):
    """One translation-memory string: a key and its text per language code."""

    key: str
    translations: Dict[str, str] = Field(default_factory=dict)


class LanguageProfile(BaseModel):
    code: str  # Namespace and translation-memory identifier
    display_name: str
    translation_backend_code: str  # DeepL target code, may differ from code
    enabled_for_translation: bool = False

    @property
    def is_source(self) -> bool:
        return self.code == SOURCE_LANGUAGE_CODE

    @property
    def short_code(self) -> str:
        """Two-letter code, as returned by language classifiers."""
        return self.code.split("-", 1)[0].lower()


LANGUAGE_PROFILES: List[LanguageProfile] = [
    LanguageProfile(code="de", display_name="Deutsch", translation_backend_code="DE", enabled_for_translation=True),
    LanguageProfile(code="en", display_name="English", translation_backend_code="EN-US"),
    LanguageProfile(code="es", display_name="Español", translation_backend_code="ES"),
    LanguageProfile(code="fr", display_name="Français", translation_backend_code="FR", enabled_for_translation=True),
    LanguageProfile(code="it", display_name="Italiano", translation_backend_code="IT", enabled_for_translation=True),
    LanguageProfile(code="ja", display_name="日本語", translation_backend_code="JA", enabled_for_translation=True),
    LanguageProfile(code="ko", display_name="한국어", translation_backend_code="KO", enabled_for_translation=True),
    LanguageProfile(code="tl", display_name="Filipino", translation_backend_code="TL"),
    LanguageProfile(code="pl", display_name="Polski", translation_backend_code="PL", enabled_for_translation=True),
    LanguageProfile(code="pt-BR", display_name="Português", translation_backend_code="PT-BR", enabled_for_translation=True),
    LanguageProfile(code="ru", display_name="Русский", translation_backend_code="RU", enabled_for_translation=True),
    LanguageProfile(code="th", display_name="ภาษาไทย", translation_backend_code="TH"),
    LanguageProfile(code="tr", display_name="Türkçe", translation_backend_code="TR", enabled_for_translation=True),
    LanguageProfile(code="vi", display_name="Tiếng Việt", translation_backend_code="VI", enabled_for_translation=True),
    LanguageProfile(code="zh-CN", display_name="汉语", translation_backend_code="ZH-HANS", enabled_for_translation=True),
]


class LanguageCatalog:
    """Lookup helpers over the supported language profiles."""

    def __init__(self, profiles: Optional[List[LanguageProfile]] = None):
        self.profiles = list(profiles if profiles is not None else LANGUAGE_PROFILES)
        if not any(profile.is_source for profile in self.profiles):
            raise ValueError(
                f"Language catalog must include the source language '{SOURCE_LANGUAGE_CODE}'"
            )

    @property
    def source(self) -> LanguageProfile:
        return next(profile for profile in self.profiles if profile.is_source)

    @property
    def codes(self) -> List[str]:
        return [profile.code for profile in self.profiles]

    def get(self, code: str) -> Optional[LanguageProfile]:
        for profile in self.profiles:
            if profile.code == code:
                return profile
        return None

    def enabled(self, with_source: bool = True) -> List[LanguageProfile]:
        """Profiles that are indexed: every translation-enabled one, plus the source."""
        return [
            profile
            for profile in self.profiles
            if profile.enabled_for_translation or (with_source and profile.is_source)
        ]

    def resolve(self, raw_code: Optional[str]) -> Optional[str]:
        """Map a classifier or LLM code (``pt``, ``zh-cn``, ``PT-BR``) to a profile code."""
        normalized = (raw_code or "").strip().lower()
        if not normalized:
            return None
        for profile in self.profiles:
            if profile.code.lower() == normalized:
                return profile.code
        short = normalized.split("-", 1)[0]
        for profile in self.profiles:
            if profile.short_code == short:
                return profile.code
        return None
