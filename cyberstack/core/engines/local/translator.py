import logging
from typing import List, Optional, Sequence

import torch
from transformers import AutoModelForSeq2SeqLM, AutoTokenizer

from cyberstack.core.engines.local.events import Consumer
from cyberstack.core.engines.local.loader import LazyModelLoader, ModelHandle

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = 'eng_Latn'

# Browser language subtags -> NLLB codes (simplified subset)
LANGUAGE_MAP = {
    'en': 'eng_Latn',
    'es': 'spa_Latn',
    'fr': 'fra_Latn',
    'de': 'deu_Latn',
    'it': 'ita_Latn',
    'pt': 'por_Latn',
    'zh': 'zho_Hans',
    'ja': 'jpn_Jpan',
    'ko': 'kor_Hang',
    'ru': 'rus_Cyrl',
    'hi': 'hin_Deva',
    'ar': 'arb_Arab',
}


def resolve_target_language(language: Optional[str], default: str = DEFAULT_LANGUAGE) -> str:
    """
    Maps 'es-AR', 'es' or an NLLB code ('spa_Latn') to an NLLB code.
    Unmapped languages resolve to `default`.
    """
    if not language:
        return default
    if language in LANGUAGE_MAP.values():
        return language
    return LANGUAGE_MAP.get(language.split('-')[0].lower(), default)


class TranslatorModelLoader(LazyModelLoader):
    """NLLB seq2seq translator. Warms its model as soon as it is activated."""

    consumer = Consumer.TRANSLATOR

    def __init__(self, model_id: str, batch_size: int = 4, max_new_tokens: int = 128, **kwargs):
        super().__init__(model_id, **kwargs)
        self.batch_size = batch_size
        self.max_new_tokens = max_new_tokens

    def _load(self, progress):
        path = self.download(progress)
        tokenizer = AutoTokenizer.from_pretrained(path)
        model = AutoModelForSeq2SeqLM.from_pretrained(path, low_cpu_mem_usage=True).to(self.device)
        model.eval()
        return tokenizer, model

    def on_activate(self) -> None:
        if self._executor is not None:
            self._executor.submit(self._warm)

    def _warm(self):
        try:
            self.ensure_loaded()
        except Exception as e:
            logger.warning(f"[translator] Warm-up failed: {e}")

    def _target_token_id(self, tokenizer, target_language: str) -> int:
        token_id = tokenizer.convert_tokens_to_ids(target_language)
        if token_id is None or token_id == tokenizer.unk_token_id:
            raise ValueError(f"Could not find token ID for {target_language}")
        return token_id

    def _translate(self, handle: ModelHandle, texts: Sequence[str], target_language: str) -> List[str]:
        tokenizer, model = handle.tokenizer, handle.model
        forced_bos = self._target_token_id(tokenizer, target_language)

        results: List[str] = []
        for start in range(0, len(texts), self.batch_size):
            batch = list(texts[start:start + self.batch_size])
            inputs = tokenizer(batch, padding=True, truncation=True, return_tensors="pt").to(model.device)
            with torch.no_grad():
                outputs = model.generate(
                    **inputs,
                    forced_bos_token_id=forced_bos,
                    max_new_tokens=self.max_new_tokens,
                )
            results.extend(tokenizer.batch_decode(outputs, skip_special_tokens=True))
            done = min(start + self.batch_size, len(texts))
            logger.debug(f"[translator] Progress: {round(done * 100 / len(texts))}%")
        return results

    def _generate(self, handle: ModelHandle, prompt: str, target_language: str = DEFAULT_LANGUAGE) -> str:
        return self._translate(handle, [prompt], target_language)[0]

    def translate_batch(self, texts: Sequence[str], target_language: str) -> List[str]:
        if not texts:
            return []
        return self._run(self._translate, texts, target_language)
