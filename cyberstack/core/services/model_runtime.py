import logging
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional

from cyberstack.core.engines.gemini_client import GeminiClient
from cyberstack.core.engines.local import (
    CapabilityResult,
    ChatModelLoader,
    ModelCoordinator,
    ModelEventBus,
    RuntimeHints,
    TranslatorModelLoader,
    collect_host_hints,
    probe,
)
from cyberstack.core.services.agent_context import AgentContextBuilder
from cyberstack.core.services.chat_service import ChatService
from cyberstack.core.services.chat_store import ChatLogStore
from cyberstack.core.services.translation_service import TranslationService

logger = logging.getLogger(__name__)


class ModelRuntime:
    """
    Application-scoped context for the hybrid model backend.

    Owns the capability verdict, the event bus, both lazy loaders, the
    coordinator and the services built on top of them. One instance lives in
    `app.extensions['model_runtime']` for the lifetime of the app.
    """

    def __init__(self,
                 settings: Mapping[str, Any],
                 context_builder: AgentContextBuilder,
                 chat_store: Optional[ChatLogStore] = None,
                 executor=None,
                 hints: Optional[RuntimeHints] = None,
                 remote_factory=None):
        self.settings = settings
        self.executor = executor
        self.capabilities = self._probe(hints)
        self.bus = ModelEventBus()

        loader_kwargs = {
            'device': self.capabilities.preferred_device,
            'cache_dir': settings.get('MODEL_CACHE_DIR'),
            'token': settings.get('HF_TOKEN'),
        }
        self.chat_loader = ChatModelLoader(
            settings['CHAT_MODEL_ID'],
            max_new_tokens=settings.get('CHAT_MAX_NEW_TOKENS', 512),
            temperature=settings.get('CHAT_TEMPERATURE', 0.1),
            **loader_kwargs,
        )
        self.translator = TranslatorModelLoader(
            settings['TRANSLATOR_MODEL_ID'],
            batch_size=settings.get('TRANSLATOR_BATCH_SIZE', 4),
            max_new_tokens=settings.get('TRANSLATOR_MAX_NEW_TOKENS', 128),
            **loader_kwargs,
        )
        self.chat_loader.attach(self.bus, executor)
        self.translator.attach(self.bus, executor)

        self.coordinator = ModelCoordinator(
            self.capabilities,
            self.bus,
            preloaders=[self.translator.preload, self.chat_loader.preload],
            executor=executor,
            grace_period=settings.get('SWITCH_GRACE_SECONDS', 0.1),
        )

        self.chat = ChatService(
            context_builder,
            remote_factory or self._remote_client,
            chat_store=chat_store,
            coordinator=self.coordinator,
            chat_loader=self.chat_loader,
        )
        self.translation = TranslationService(
            self.coordinator,
            self.translator,
            default_language=settings.get('TRANSLATOR_DEFAULT_LANGUAGE', 'eng_Latn'),
        )

    def _probe(self, hints: Optional[RuntimeHints]) -> CapabilityResult:
        threshold = self.settings.get('RAM_THRESHOLD_GB', 4)
        if not self.settings.get('LOCAL_MODELS_ENABLED', True):
            result = probe(hints or RuntimeHints(), threshold)
            return replace(result, compatible=False, reason="Local models disabled by configuration.")
        return probe(hints or collect_host_hints(), threshold)

    def _remote_client(self) -> GeminiClient:
        return GeminiClient(
            api_key=self.settings.get('GEMINI_API_KEY'),
            model=self.settings.get('GEMINI_MODEL'),
            temperature=self.settings.get('GEMINI_TEMP'),
            top_p=self.settings.get('GEMINI_TOP_P'),
            top_k=self.settings.get('GEMINI_TOP_K'),
            max_output_tokens=self.settings.get('GEMINI_MAX_TOKENS'),
        )

    def start(self) -> None:
        self.coordinator.start()

    def shutdown(self) -> None:
        self.coordinator.shutdown()
        for loader in (self.chat_loader, self.translator):
            loader.dispose()
            loader.detach()

    def status(self) -> Dict[str, Any]:
        """Snapshot for the status endpoint and the front end's polling."""
        return {
            'coordinator': self.coordinator.state.to_dict(),
            'capabilities': self.capabilities.to_dict(),
            'remote_only': self.chat.remote_only,
            'models': {
                loader.consumer.value: {
                    'model_id': loader.model_id,
                    'device': loader.device,
                    'active': loader.active,
                    'load_status': loader.status.value,
                    'status_message': loader.handle.status_message,
                }
                for loader in (self.translator, self.chat_loader)
            },
        }
