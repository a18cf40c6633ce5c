"""Tests for the two-stage language detector."""

from typing import List, Tuple
from unittest.mock import MagicMock

import pytest
from lingua_kb.core.exceptions import DisabledError, LLMProviderError


class FakeClassifier:
    def __init__(self, candidates: List[Tuple[str, float]]):
        self.candidates = candidates
        self.seen: List[str] = []

    def classify(self, text: str) -> List[Tuple[str, float]]:
        self.seen.append(text)
        return list(self.candidates)


@pytest.fixture
def make_detector(catalog, flags):
    from lingua_kb.services.translation.language_detector import LanguageDetector

    def _make(candidates=None, llm_answer=None, llm=None, threshold=0.95):
        local = FakeClassifier(candidates) if candidates is not None else None
        if llm is None and llm_answer is not None:
            llm = MagicMock()
            llm.generate.return_value = llm_answer
        return LanguageDetector(
            catalog=catalog,
            flags=flags,
            local_classifier=local,
            llm_provider=llm,
            confidence_threshold=threshold,
        )

    return _make


class TestNormalization:
    def test_informal_tokens_are_expanded(self):
        from lingua_kb.services.translation.language_detector import normalize_for_detection

        assert normalize_for_detection("u good?") == "you good?"
        assert normalize_for_detection("r u here") == "are you here"

    def test_words_of_other_languages_are_not_expanded(self):
        from lingua_kb.services.translation.language_detector import normalize_for_detection

        assert normalize_for_detection("y a-t-il un moyen") == "y a-t-il un moyen"
        assert normalize_for_detection("ur en gammal bok") == "ur en gammal bok"

    def test_urls_are_removed(self):
        from lingua_kb.services.translation.language_detector import normalize_for_detection

        assert normalize_for_detection("see https://example.com/x?y=1 now") == "see now"

    def test_tokens_inside_words_are_kept(self):
        from lingua_kb.services.translation.language_detector import normalize_for_detection

        assert normalize_for_detection("rune upgrade") == "rune upgrade"


class TestLocalStage:
    def test_confident_supported_answer_is_accepted(self, make_detector):
        detector = make_detector([("fr", 0.99)])

        assert detector.classify_locally("Comment puis-je relancer?") == "fr"

    def test_classifier_sees_normalized_text(self, make_detector):
        detector = make_detector([("en", 0.99)])

        detector.classify_locally("u good? https://example.com")

        assert detector.local.seen == ["you good?"]

    def test_below_threshold_abstains(self, make_detector):
        detector = make_detector([("de", 0.94)])

        assert detector.classify_locally("Hallo") is None

    def test_unknown_language_abstains(self, make_detector):
        detector = make_detector([("und", 0.0)])

        assert detector.classify_locally("1234 :)") is None

    def test_unsupported_language_abstains(self, make_detector):
        detector = make_detector([("sw", 0.99)])

        assert detector.classify_locally("Habari yako") is None

    def test_short_code_resolves_to_regional_profile(self, make_detector):
        detector = make_detector([("pt", 0.99)])

        assert detector.classify_locally("Como faço para rolar de novo?") == "pt-BR"

    def test_empty_input_abstains(self, make_detector):
        detector = make_detector([("en", 0.99)])

        assert detector.classify_locally("   ") is None
        assert detector.local.seen == []

    def test_threshold_is_clamped(self, make_detector):
        detector = make_detector([("en", 0.99)], threshold=7)

        assert detector.confidence_threshold == 1.0


class TestLLMStage:
    def test_exact_code_is_accepted(self, make_detector):
        detector = make_detector(llm_answer=" ko ")

        assert detector.classify_with_llm("안녕하세요") == "ko"

    def test_code_match_is_case_insensitive(self, make_detector):
        detector = make_detector(llm_answer="PT-br")

        assert detector.classify_with_llm("Olá") == "pt-BR"

    def test_prompt_lists_every_supported_code(self, make_detector, catalog):
        detector = make_detector(llm_answer="de")

        detector.classify_with_llm("Hallo")

        system, user = detector.llm.generate.call_args.args
        assert ",".join(catalog.codes) in system
        assert user == "Hallo"

    def test_unsupported_sentinel_returns_none(self, make_detector):
        detector = make_detector(llm_answer="UNSUPPORTED")

        assert detector.classify_with_llm("???") is None

    def test_out_of_vocabulary_answer_returns_none(self, make_detector):
        detector = make_detector(llm_answer="The language is French")

        assert detector.classify_with_llm("Bonjour") is None

    def test_empty_answer_returns_none(self, make_detector):
        detector = make_detector(llm_answer="")

        assert detector.classify_with_llm("...") is None

    def test_provider_failure_returns_none(self, make_detector):
        llm = MagicMock()
        llm.generate.side_effect = LLMProviderError("rate limited")
        detector = make_detector(llm=llm)

        assert detector.classify_with_llm("Hallo") is None

    def test_disabled_flag_raises(self, make_detector, flags):
        from lingua_kb.services.feature_flags import LLM_CLASSIFICATION

        flags.set(LLM_CLASSIFICATION, False)
        detector = make_detector(llm_answer="de")

        with pytest.raises(DisabledError) as exc_info:
            detector.classify_with_llm("Hallo")

        assert "ChatGPT" in str(exc_info.value.detail)
        detector.llm.generate.assert_not_called()

    def test_no_llm_returns_none(self, make_detector):
        assert make_detector().classify_with_llm("Hallo") is None


class TestGuessLanguage:
    @pytest.mark.asyncio
    async def test_local_answer_skips_llm(self, make_detector):
        detector = make_detector([("it", 0.99)], llm_answer="de")

        assert await detector.guess_language("Come posso?") == "it"
        detector.llm.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_to_llm_when_local_abstains(self, make_detector):
        detector = make_detector([("it", 0.5)], llm_answer="de")

        assert await detector.guess_language("Hallo") == "de"
        detector.llm.generate.assert_called_once()

    @pytest.mark.asyncio
    async def test_off_topic_flag_ignores_source_language(self, make_detector):
        detector = make_detector([("en", 0.99)], llm_answer="de")

        assert await detector.flag_off_topic_language("How do I reroll?") is None
        detector.llm.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_off_topic_flag_reports_other_language(self, make_detector):
        detector = make_detector([("ru", 0.99)])

        assert await detector.flag_off_topic_language("Как перебросить?") == "ru"

    @pytest.mark.asyncio
    async def test_off_topic_flag_never_uses_llm(self, make_detector):
        detector = make_detector([("ru", 0.4)], llm_answer="ru")

        assert await detector.flag_off_topic_language("Как?") is None
        detector.llm.generate.assert_not_called()


class TestLangdetectBackend:
    @pytest.fixture
    def detector(self, catalog, flags):
        from lingua_kb.services.translation.language_detector import (
            LangdetectClassifier,
            LanguageDetector,
        )

        return LanguageDetector(catalog=catalog, flags=flags, local_classifier=LangdetectClassifier())

    def test_english_shorthand_is_not_taken_for_another_language(self, detector):
        assert detector.classify_locally("u good?") in (None, "en")

    def test_french_question_is_accepted_locally(self, detector):
        assert detector.classify_locally("y a-t-il un moyen de réinitialiser") == "fr"
