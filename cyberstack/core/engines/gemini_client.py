import logging
from typing import Dict, List, Optional, Sequence

from google import genai
from google.genai import types

from cyberstack.config import Config
from cyberstack.core.errors import ApiError, ConfigurationError

logger = logging.getLogger(__name__)

# Conversation roles -> Gemini content roles
ROLE_MAP = {
    'user': 'user',
    'assistant': 'model',
}


class GeminiClient:
    """
    Remote fallback for the chat assistant (Google Gemini API).
    Stateless: the full history is sent on every call, there is no server-side
    session memory. Single attempt; failures surface as ApiError.
    """

    def __init__(self,
                 api_key: Optional[str] = None,
                 model: Optional[str] = None,
                 temperature: Optional[float] = None,
                 top_p: Optional[float] = None,
                 top_k: Optional[int] = None,
                 max_output_tokens: Optional[int] = None):
        api_key = api_key or Config.GEMINI_API_KEY
        if not api_key:
            raise ConfigurationError("[Gemini Client] GEMINI_API_KEY not found in environment.")
        self.client = genai.Client(api_key=api_key)
        self.model = model or Config.GEMINI_MODEL
        self.temperature = Config.GEMINI_TEMP if temperature is None else temperature
        self.top_p = Config.GEMINI_TOP_P if top_p is None else top_p
        self.top_k = Config.GEMINI_TOP_K if top_k is None else top_k
        self.max_output_tokens = max_output_tokens or Config.GEMINI_MAX_TOKENS

    @staticmethod
    def build_contents(history: Sequence[Dict[str, str]]) -> List[types.Content]:
        """Maps ordered {role, content} messages to Gemini content turns."""
        contents = []
        for message in history:
            role = ROLE_MAP.get(message.get('role'))
            if role is None:
                raise ValueError(f"Unsupported message role: {message.get('role')!r}")
            contents.append(types.Content(role=role, parts=[types.Part(text=message.get('content', ''))]))
        return contents

    def _build_config(self, system_instruction: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=self.temperature,
            top_p=self.top_p,
            top_k=self.top_k,
            max_output_tokens=self.max_output_tokens,
        )

    def generate(self, history: Sequence[Dict[str, str]], system_instruction: str) -> str:
        """
        Generates the assistant reply for `history`.

        Args:
            history: ordered messages, each {'role': 'user'|'assistant', 'content': str}.
            system_instruction: persona/context prompt.

        Returns:
            str: generated text.
        """
        contents = self.build_contents(history)
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=contents,
                config=self._build_config(system_instruction),
            )
        except Exception as e:
            logger.error(f"[Gemini Client] Generation failed: {e}")
            raise ApiError(f"Gemini request failed: {e}") from e

        try:
            text = response.text
        except Exception:
            text = None
        if not text:
            raise ApiError("Empty response received from Gemini (possibly blocked).")

        if response.usage_metadata:
            logger.info(f"[Gemini Client] Reply generated | "
                        f"in={response.usage_metadata.prompt_token_count} "
                        f"out={response.usage_metadata.candidates_token_count}")
        return text
