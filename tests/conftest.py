import threading

import fakeredis
import pytest

from cyberstack import create_app
from cyberstack.core.engines.local import Consumer, LazyModelLoader


class InlineExecutor:
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        fn(*args, **kwargs)


class DeferredExecutor:
    """Holds submitted work until run_all() is called."""

    def __init__(self):
        self.tasks = []

    def submit(self, fn, *args, **kwargs):
        self.tasks.append((fn, args, kwargs))

    def run_all(self):
        tasks, self.tasks = self.tasks, []
        for fn, args, kwargs in tasks:
            fn(*args, **kwargs)


class FakeLoader(LazyModelLoader):
    """Loader with in-memory load/generate hooks; never touches the hub."""

    consumer = Consumer.CHATBOT

    def __init__(self, consumer=Consumer.CHATBOT, block_load=None, fail_load=False, block_generate=None):
        super().__init__('test-org/test-model')
        self.consumer = consumer
        self.block_load = block_load
        self.fail_load = fail_load
        self.block_generate = block_generate
        self.load_started = threading.Event()
        self.generate_started = threading.Event()
        self.load_calls = 0

    def _load(self, progress):
        self.load_calls += 1
        progress(50.0)
        self.load_started.set()
        if self.block_load is not None:
            self.block_load.wait(timeout=5)
        if self.fail_load:
            raise RuntimeError("weights missing")
        return 'tokenizer', 'model'

    def _generate(self, handle, prompt, **options):
        self.generate_started.set()
        if self.block_generate is not None:
            self.block_generate.wait(timeout=5)
        return f"echo: {prompt}"


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def app(redis_client):
    app = create_app(
        {
            'TESTING': True,
            'LOCAL_MODELS_ENABLED': False,
            'GITHUB_REPO_OWNER': 'octocat',
            'GITHUB_TOKEN': 'test-token',
            'GEMINI_API_KEY': 'test-key',
            'VIEW_RETRY_DELAY': 0.0,
        },
        redis_client=redis_client,
        executor=InlineExecutor(),
    )
    yield app
    app.extensions['model_runtime'].shutdown()


@pytest.fixture
def client(app):
    return app.test_client()
