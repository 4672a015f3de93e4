import threading
from unittest import mock

import pytest

from conftest import FakeLoader
from cyberstack.core.engines.local import Consumer, ModelCoordinator, ModelEventBus, RuntimeHints, probe
from cyberstack.core.errors import InferenceError, LoadError
from cyberstack.core.services.chat_service import ChatService, validate_messages
from cyberstack.core.services.chat_store import ChatLogStore

HISTORY = [{'role': 'user', 'content': 'What do you build?'}]


@pytest.fixture
def context_builder():
    builder = mock.Mock()
    builder.system_instruction.return_value = 'You are the portfolio assistant.'
    return builder


@pytest.fixture
def remote():
    client = mock.Mock()
    client.generate.return_value = 'remote reply'
    return client


@pytest.fixture
def coordinator():
    coordinator = mock.Mock()
    coordinator.request_switch.return_value = True
    return coordinator


class TestValidateMessages:
    def test_accepts_well_formed(self):
        assert validate_messages(HISTORY + [{'role': 'user', 'content': 'more', 'extra': 1}])[-1] == {
            'role': 'user', 'content': 'more'}

    @pytest.mark.parametrize("messages", [
        None,
        [],
        ['hi'],
        [{'role': 'system', 'content': 'x'}],
        [{'role': 'user', 'content': 3}],
        [{'role': 'user', 'content': 'q'}, {'role': 'assistant', 'content': 'a'}],
    ])
    def test_rejects_malformed(self, messages):
        with pytest.raises(ValueError):
            validate_messages(messages)


class TestGenerate:
    def test_remote_when_no_local_runtime(self, context_builder, remote):
        service = ChatService(context_builder, lambda: remote)
        assert service.generate(HISTORY) == {'reply': 'remote reply', 'backend': 'remote'}
        remote.generate.assert_called_once_with(HISTORY, 'You are the portfolio assistant.')

    def test_local_when_slot_granted(self, context_builder, remote, coordinator):
        chat_loader = mock.Mock()
        chat_loader.infer.return_value = 'local reply'
        service = ChatService(context_builder, lambda: remote, coordinator=coordinator, chat_loader=chat_loader)

        assert service.generate(HISTORY) == {'reply': 'local reply', 'backend': 'local'}
        chat_loader.infer.assert_called_once_with(
            'What do you build?', system_instruction='You are the portfolio assistant.', history=[])
        remote.generate.assert_not_called()

    def test_remote_when_slot_refused(self, context_builder, remote, coordinator):
        coordinator.request_switch.return_value = False
        chat_loader = mock.Mock()
        service = ChatService(context_builder, lambda: remote, coordinator=coordinator, chat_loader=chat_loader)
        assert service.generate(HISTORY)['backend'] == 'remote'
        assert service.remote_only is False

    def test_local_failure_sticks_to_remote(self, context_builder, remote, coordinator):
        chat_loader = mock.Mock()
        chat_loader.ensure_loaded.side_effect = LoadError("out of memory")
        service = ChatService(context_builder, lambda: remote, coordinator=coordinator, chat_loader=chat_loader)

        assert service.generate(HISTORY)['backend'] == 'remote'
        assert service.remote_only is True
        assert service.generate(HISTORY)['backend'] == 'remote'
        assert chat_loader.ensure_loaded.call_count == 1
        assert coordinator.request_switch.call_count == 1

    def test_remote_client_is_built_lazily(self, context_builder, remote):
        factory = mock.Mock(return_value=remote)
        service = ChatService(context_builder, factory)
        factory.assert_not_called()
        service.generate(HISTORY)
        service.generate(HISTORY)
        factory.assert_called_once()


def test_reply_logs_transcript(context_builder, remote, redis_client):
    store = ChatLogStore(redis_client)
    service = ChatService(context_builder, lambda: remote, chat_store=store)

    result = service.reply(HISTORY, chat_id='chat-7')
    assert result['chatId'] == 'chat-7'
    assert result['messages'][-1] == {'role': 'assistant', 'content': 'remote reply'}
    assert store.get_chat('chat-7')['messages'] == result['messages']
    assert store.list_chats()[0]['preview'] == 'remote reply'


class TestSlotContention:
    """A real coordinator and loader: losing the slot is not a model failure."""

    @pytest.fixture
    def coordinator(self):
        capabilities = probe(RuntimeHints(device_memory_gb=16, has_shared_memory=True, has_wasm=True))
        coordinator = ModelCoordinator(capabilities, ModelEventBus(), sleep=lambda seconds: None)
        coordinator.start()
        return coordinator

    def make_service(self, context_builder, remote, coordinator, chat_loader):
        chat_loader.attach(coordinator.bus)
        return ChatService(context_builder, lambda: remote, coordinator=coordinator, chat_loader=chat_loader)

    def run_turn(self, service):
        outcome = {}
        thread = threading.Thread(target=lambda: outcome.update(service.generate(HISTORY)))
        thread.start()
        return thread, outcome

    def test_concurrent_turn_goes_remote_once(self, context_builder, remote, coordinator):
        release = threading.Event()
        chat_loader = FakeLoader(block_generate=release)
        service = self.make_service(context_builder, remote, coordinator, chat_loader)

        thread, first = self.run_turn(service)
        assert chat_loader.generate_started.wait(timeout=5)
        second = service.generate(HISTORY)
        release.set()
        thread.join(timeout=5)

        assert first['backend'] == 'local'
        assert second['backend'] == 'remote'
        assert service.remote_only is False
        assert service.generate(HISTORY)['backend'] == 'local'

    def test_translation_taking_slot_mid_load(self, context_builder, remote, coordinator):
        release = threading.Event()
        chat_loader = FakeLoader(block_load=release)
        service = self.make_service(context_builder, remote, coordinator, chat_loader)

        thread, during = self.run_turn(service)
        assert chat_loader.load_started.wait(timeout=5)
        assert coordinator.request_switch(Consumer.TRANSLATOR) is True
        release.set()
        thread.join(timeout=5)

        assert during['backend'] == 'remote'
        assert service.remote_only is False
        chat_loader.block_load = None
        assert service.generate(HISTORY)['backend'] == 'local'
        assert chat_loader.load_calls == 2

    def test_genuine_failure_still_downgrades(self, context_builder, remote, coordinator):
        service = self.make_service(context_builder, remote, coordinator, FakeLoader(fail_load=True))
        assert service.generate(HISTORY)['backend'] == 'remote'
        assert service.remote_only is True

    def test_inference_failure_downgrades(self, context_builder, remote, coordinator):
        chat_loader = mock.Mock()
        chat_loader.infer.side_effect = InferenceError("CUDA error")
        service = ChatService(context_builder, lambda: remote, coordinator=coordinator, chat_loader=chat_loader)
        assert service.generate(HISTORY)['backend'] == 'remote'
        assert service.remote_only is True
