"""Administrative feature flags.

Flag storage lives outside the knowledge base; the core only reads flags
through the ``FeatureFlags`` protocol. ``SettingsFeatureFlags`` seeds values
from settings and accepts runtime overrides from whatever admin surface owns
the flags.
"""

import logging
from typing import Dict, Protocol, runtime_checkable

from lingua_kb.core.config import Settings

logger = logging.getLogger(__name__)

AUTO_INDEXING = "auto_indexing"
AUTO_TRANSLATION_CONFIRM = "auto_translation_confirm"
TRANSLATION = "deepl"
LLM_CLASSIFICATION = "chatgpt"


@runtime_checkable
class FeatureFlags(Protocol):
    def is_enabled(self, flag: str) -> bool:
        ...


class SettingsFeatureFlags:
    """Flags backed by settings defaults plus in-memory overrides."""

    def __init__(self, settings: Settings):
        self._values: Dict[str, bool] = {
            AUTO_INDEXING: settings.AUTO_INDEXING,
            AUTO_TRANSLATION_CONFIRM: settings.AUTO_TRANSLATION_CONFIRM,
            TRANSLATION: settings.TRANSLATION_ENABLED,
            LLM_CLASSIFICATION: settings.LLM_CLASSIFICATION_ENABLED,
        }

    def is_enabled(self, flag: str) -> bool:
        # Unknown flags are off
        return self._values.get(flag, False)

    def set(self, flag: str, enabled: bool) -> None:
        previous = self._values.get(flag)
        self._values[flag] = enabled
        if previous != enabled:
            logger.info(f"Feature flag '{flag}' set to {enabled}")

    def snapshot(self) -> Dict[str, bool]:
        return dict(self._values)
