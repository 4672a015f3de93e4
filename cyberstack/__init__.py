import atexit
import logging

import redis
from flask import Flask, jsonify

from cyberstack.config import Config
from cyberstack.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def create_app(test_config=None, redis_client=None, executor=None, hints=None):
    """
    Application Factory for the CyberStack portfolio backend.
    Wires the Redis stores, the GitHub client, the agent context and the
    hybrid model runtime onto the app, then registers the API Blueprint.
    """
    from cyberstack.core.services.agent_context import AgentContextBuilder
    from cyberstack.core.services.chat_store import ChatLogStore
    from cyberstack.core.services.github_client import GitHubClient
    from cyberstack.core.services.model_runtime import ModelRuntime
    from cyberstack.core.services.view_store import ViewStore
    from cyberstack.utils.retry import RetryPolicy

    app = Flask(__name__)

    # Load settings from the decoupled config module
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)
    settings = app.config

    # Key-value store (string responses for JSON blobs and hashes)
    if redis_client is None:
        redis_client = redis.Redis.from_url(settings['REDIS_URL'], decode_responses=True)

    view_store = ViewStore(
        redis_client,
        dedup_ttl_seconds=settings['VIEW_DEDUP_TTL_SECONDS'],
        retry_policy=RetryPolicy(
            max_attempts=settings['VIEW_RETRY_MAX_ATTEMPTS'],
            delay=settings['VIEW_RETRY_DELAY'],
            backoff=settings['VIEW_RETRY_BACKOFF'],
        ),
    )
    chat_store = ChatLogStore(redis_client, preview_length=settings['CHAT_PREVIEW_LENGTH'])
    github = GitHubClient(
        settings.get('GITHUB_REPO_OWNER'),
        token=settings.get('GITHUB_TOKEN'),
        base_url=settings['GITHUB_API_URL'],
        cache_seconds=settings['GITHUB_CACHE_SECONDS'],
        timeout=settings['GITHUB_TIMEOUT'],
    )
    context_builder = AgentContextBuilder(github, settings['PROFILE_PATH'], settings['PERSONA_TEMPLATE_PATH'])

    if executor is None:
        from cyberstack.workers.executor import executor

    runtime = ModelRuntime(
        settings,
        context_builder,
        chat_store=chat_store,
        executor=executor,
        hints=hints,
    )

    app.extensions.update({
        'redis': redis_client,
        'view_store': view_store,
        'chat_store': chat_store,
        'github': github,
        'agent_context': context_builder,
        'model_runtime': runtime,
    })

    # Register the API Blueprint Package
    from cyberstack.http.controllers.api import api_bp
    app.register_blueprint(api_bp)

    @app.route('/health')
    def health():
        try:
            redis_ok = bool(redis_client.ping())
        except redis.RedisError:
            redis_ok = False
        return jsonify({
            'status': 'ok' if redis_ok else 'degraded',
            'redis': redis_ok,
            'localModels': runtime.coordinator.state.to_dict(),
        }), 200 if redis_ok else 503

    @app.errorhandler(ConfigurationError)
    def handle_configuration_error(e):
        logger.error(f"[Config] {e}")
        return jsonify({'message': str(e)}), 503

    @app.errorhandler(500)
    def handle_internal_error(e):
        return jsonify({'message': 'Internal server error'}), 500

    if settings.get('MODEL_RUNTIME_AUTOSTART', True):
        runtime.start()
        atexit.register(runtime.shutdown)

    return app
