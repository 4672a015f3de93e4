import logging
from typing import List, Optional, Sequence

from cyberstack.core.engines.local import Consumer, ModelCoordinator, TranslatorModelLoader, resolve_target_language
from cyberstack.core.errors import InferenceError, LoadError

logger = logging.getLogger(__name__)

# Fragments shorter than this are returned untouched
MIN_TRANSLATABLE_LENGTH = 3


class TranslationUnavailable(Exception):
    """Local translation is not possible on this runtime right now."""


class TranslationService:
    """
    Page translation through the local NLLB model. There is no remote
    fallback: when the slot cannot be obtained the caller keeps the original text.
    """

    def __init__(self,
                 coordinator: Optional[ModelCoordinator],
                 translator: Optional[TranslatorModelLoader],
                 default_language: str = 'eng_Latn'):
        self.coordinator = coordinator
        self.translator = translator
        self.default_language = default_language

    @property
    def supported(self) -> bool:
        return self.coordinator is not None and self.translator is not None and self.coordinator.allows_local()

    def translate(self, texts: Sequence[str], language: Optional[str] = None) -> List[str]:
        target = resolve_target_language(language, self.default_language)
        candidates = [i for i, t in enumerate(texts) if t and len(t.strip()) >= MIN_TRANSLATABLE_LENGTH]
        results = list(texts)
        if not candidates:
            # nothing to translate, the chat model keeps the slot
            return results

        if not self.supported or not self.coordinator.request_switch(Consumer.TRANSLATOR):
            raise TranslationUnavailable("Local translation is not available.")

        try:
            self.translator.ensure_loaded()
            translated = self.translator.translate_batch([texts[i].strip() for i in candidates], target)
        except (LoadError, InferenceError) as e:
            logger.error(f"[Translation] {e}")
            raise TranslationUnavailable(str(e)) from e

        for index, text in zip(candidates, translated):
            if text:
                results[index] = text
        logger.info(f"[Translation] Translated {len(candidates)} fragment(s) to {target}")
        return results
