from unittest import mock

import pytest

from conftest import InlineExecutor
from cyberstack.config import Config
from cyberstack.core.engines.local import ActiveConsumer, RuntimeHints
from cyberstack.core.services.model_runtime import ModelRuntime


def settings(**overrides):
    values = {key: getattr(Config, key) for key in dir(Config) if key.isupper()}
    values.update(overrides)
    return values


@pytest.fixture
def context_builder():
    return mock.Mock()


def test_disabled_runtime_never_probes_host(context_builder):
    with mock.patch('cyberstack.core.services.model_runtime.collect_host_hints') as collect:
        runtime = ModelRuntime(settings(LOCAL_MODELS_ENABLED=False), context_builder)
    collect.assert_not_called()
    assert runtime.capabilities.compatible is False


def test_low_memory_host_stays_remote(context_builder):
    hints = RuntimeHints(device_memory_gb=2, has_shared_memory=True, has_wasm=True)
    runtime = ModelRuntime(settings(LOCAL_MODELS_ENABLED=True), context_builder,
                           executor=InlineExecutor(), hints=hints)
    runtime.start()
    assert runtime.coordinator.state.active_consumer == ActiveConsumer.NONE
    assert runtime.translation.supported is False


def test_compatible_host_preloads_and_activates_translator(context_builder, monkeypatch):
    hints = RuntimeHints(device_memory_gb=16, has_gpu=True, has_shared_memory=True, has_wasm=True)
    runtime = ModelRuntime(settings(LOCAL_MODELS_ENABLED=True), context_builder, hints=hints)
    # no executor: preload runs inline, activation warm-up is skipped
    monkeypatch.setattr(runtime.translator, 'preload', lambda: None)
    monkeypatch.setattr(runtime.chat_loader, 'preload', lambda: None)
    runtime.coordinator.preloaders = [runtime.translator.preload, runtime.chat_loader.preload]

    assert runtime.chat_loader.device == 'cuda'
    runtime.start()
    status = runtime.status()
    assert status['coordinator']['active_consumer'] == 'translator'
    assert status['models']['translator']['active'] is True

    runtime.shutdown()
    assert runtime.coordinator.state.active_consumer == ActiveConsumer.NONE
    assert runtime.translator.active is False
