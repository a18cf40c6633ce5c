"""Glossary Manager for template tokens and provider glossaries.

Two jobs:
- protect template tokens (``{name}``, ``{0:plural:a|b}``, ``<#123>``,
  ``<b>``) from the translation provider and restore them afterwards;
- turn translation-memory strings into clean source/target glossary pairs.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Pattern, Sequence, Tuple

from lingua_kb.metrics.translation_metrics import glossary_pairs_skipped_total
from lingua_kb.models.language import SOURCE_LANGUAGE_CODE, TranslationMemoryItem

logger = logging.getLogger(__name__)

TEMPLATE_TOKEN_PATTERN = re.compile(r"\{[^{}\n]*\}|<[^<>\s]+>")
PLURAL_TOKEN_PATTERN = re.compile(r"\{0:plural:([^|}]+)\|[^}]+\}")
OPENING_TAG_PATTERN = re.compile(r"<[a-z=]+>")
CLOSING_TAG_PATTERN = re.compile(r"</[a-z=]+>")
CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f]")
PLACEHOLDER_RESIDUE = re.compile(r"KB[\s_]*TOKEN", re.IGNORECASE)


def clean_up_translation(text: str) -> str:
    """Flatten a translation-memory string into plain glossary text."""
    text = text.replace("\n", "")
    text = PLURAL_TOKEN_PATTERN.sub(lambda m: m.group(1), text)
    text = OPENING_TAG_PATTERN.sub("", text)
    text = CLOSING_TAG_PATTERN.sub("", text)
    return text.strip()


@dataclass
class SkippedPair:
    key: str
    reason: str


@dataclass
class GlossaryPairs:
    pairs: Dict[str, str] = field(default_factory=dict)
    skipped: List[SkippedPair] = field(default_factory=list)


class GlossaryManager:
    """Preserves template tokens during translation and builds glossary pairs."""

    IGNORED_KEYS: ClassVar[List[Pattern[str]]] = [
        # Torso items are called "<Something> Chest" and would pull every
        # treasure chest mention towards the armour translation
        re.compile(r"Item_(?:29|37|44|52|60)_Name"),
        # Long strings with replacement variables
        re.compile(r"Talent_\d+_(?:Name|Desc)"),
    ]

    MAX_TERM_LENGTH: ClassVar[int] = 1024

    def __init__(self, ignored_keys: Optional[Sequence[Pattern[str]]] = None):
        self.ignored_keys = list(ignored_keys) if ignored_keys is not None else list(self.IGNORED_KEYS)

    def protect_terms(self, text: str) -> Tuple[str, Dict[str, str]]:
        """Replace template tokens with placeholders.

        This should be called BEFORE sending text to the translation provider.

        Returns:
            Tuple of (modified_text, placeholder_map)
        """
        placeholder_map: Dict[str, str] = {}
        counter = [0]  # Use list for closure modification

        def replace_with_placeholder(match: re.Match) -> str:
            placeholder = f"__KB_TOKEN_{counter[0]}__"
            placeholder_map[placeholder] = match.group(0)
            counter[0] += 1
            return placeholder

        protected_text = TEMPLATE_TOKEN_PATTERN.sub(replace_with_placeholder, text)
        return protected_text, placeholder_map

    def restore_terms(self, text: str, placeholder_map: Dict[str, str]) -> str:
        """Restore original tokens from placeholders.

        This should be called AFTER receiving translated text.
        """
        result = text
        for placeholder, original in placeholder_map.items():
            result = result.replace(placeholder, original)
        return result

    def unresolved_tokens(self, restored: str, placeholder_map: Dict[str, str]) -> List[str]:
        """Template syntax the provider mangled: placeholder residue, or tokens that never came back."""
        problems = [match.group(0) for match in PLACEHOLDER_RESIDUE.finditer(restored)]
        problems.extend(token for token in placeholder_map.values() if token not in restored)
        return problems

    def is_ignored(self, key: str) -> bool:
        return any(pattern.search(key) for pattern in self.ignored_keys)

    def validate_term(self, term: str) -> Optional[str]:
        """Return why ``term`` cannot be a glossary term, or None if it can."""
        if not term:
            return "term is empty"
        if term != term.strip():
            return "term has leading or trailing whitespace"
        if CONTROL_CHARACTERS.search(term):
            return "term contains control characters"
        if len(term) > self.MAX_TERM_LENGTH:
            return f"term is longer than {self.MAX_TERM_LENGTH} characters"
        return None

    def format_pairs(
        self, items: Sequence[TranslationMemoryItem], target_code: str
    ) -> GlossaryPairs:
        """Build ``source -> target`` glossary pairs for one target language.

        Items missing either side are silently dropped; every other rejection
        is recorded with its reason and logged once as a batch.
        """
        result = GlossaryPairs()

        for item in items:
            source = item.translations.get(SOURCE_LANGUAGE_CODE)
            target = item.translations.get(target_code)
            if not source or not target:
                continue
            if self.is_ignored(item.key):
                continue

            clean_source = clean_up_translation(source)
            clean_target = clean_up_translation(target)

            reason: Optional[str] = None
            if "{" in clean_source or "{" in clean_target:
                reason = "variable still present in string"
            else:
                reason = self.validate_term(clean_source) or self.validate_term(clean_target)

            if reason is not None:
                result.skipped.append(SkippedPair(key=item.key, reason=reason))
                glossary_pairs_skipped_total.labels(
                    reason="variable" if reason.startswith("variable") else "invalid_term"
                ).inc()
                continue

            result.pairs[clean_source] = clean_target

        if result.skipped:
            details = "; ".join(f"`{s.key}`: {s.reason}" for s in result.skipped[:20])
            logger.warning(
                f"Skipped {len(result.skipped)} glossary pairs for {target_code}: {details}"
            )

        return result
