import logging
from typing import Dict, List, Optional, Sequence

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer

from cyberstack.core.engines.local.events import Consumer
from cyberstack.core.engines.local.loader import LazyModelLoader, ModelHandle

logger = logging.getLogger(__name__)


class ChatModelLoader(LazyModelLoader):
    """Causal LM used by the chat assistant when local compute is granted."""

    consumer = Consumer.CHATBOT

    def __init__(self, model_id: str, max_new_tokens: int = 512, temperature: float = 0.1, **kwargs):
        super().__init__(model_id, **kwargs)
        self.max_new_tokens = max_new_tokens
        self.temperature = temperature

    def _load(self, progress):
        path = self.download(progress)
        # fp16 on accelerators, full precision on the CPU fallback
        torch_dtype = torch.float16 if self.device != 'cpu' else torch.float32
        tokenizer = AutoTokenizer.from_pretrained(path)
        model = AutoModelForCausalLM.from_pretrained(
            path,
            torch_dtype=torch_dtype,
            low_cpu_mem_usage=True,
        ).to(self.device)
        model.eval()
        return tokenizer, model

    @staticmethod
    def build_messages(prompt: str,
                       system_instruction: Optional[str] = None,
                       history: Optional[Sequence[Dict[str, str]]] = None) -> List[Dict[str, str]]:
        messages = []
        if system_instruction:
            messages.append({'role': 'system', 'content': system_instruction})
        for message in history or []:
            messages.append({'role': message['role'], 'content': message['content']})
        messages.append({'role': 'user', 'content': prompt})
        return messages

    def _generate(self, handle: ModelHandle, prompt: str,
                  system_instruction: Optional[str] = None,
                  history: Optional[Sequence[Dict[str, str]]] = None,
                  max_new_tokens: Optional[int] = None,
                  temperature: Optional[float] = None) -> str:
        tokenizer, model = handle.tokenizer, handle.model
        messages = self.build_messages(prompt, system_instruction, history)

        # 1. Templating + Tokenization
        input_ids = tokenizer.apply_chat_template(
            messages,
            add_generation_prompt=True,
            return_tensors="pt",
        ).to(model.device)

        # 2. Generation
        temperature = self.temperature if temperature is None else temperature
        with torch.no_grad():
            generated_ids = model.generate(
                input_ids,
                max_new_tokens=max_new_tokens or self.max_new_tokens,
                do_sample=temperature > 0,
                temperature=temperature if temperature > 0 else None,
                pad_token_id=tokenizer.pad_token_id or tokenizer.eos_token_id,
            )

        # 3. Decoding (new tokens only)
        new_tokens = generated_ids[0][input_ids.shape[1]:]
        text = tokenizer.decode(new_tokens, skip_special_tokens=True).strip()
        logger.debug(f"[chatbot] Generated {new_tokens.shape[0]} tokens")
        return text
