import logging
from flask import request, jsonify
from cyberstack.core.engines.local import Consumer, hints_from_browser, probe
from cyberstack.core.services.translation_service import TranslationUnavailable
from . import api_bp, get_service

logger = logging.getLogger(__name__)


@api_bp.route('/api/models/status', methods=['GET'])
def get_model_status():
    """Polled by the front end; suppressed in the request log by run.py."""
    return jsonify(get_service('model_runtime').status())


@api_bp.route('/api/models/switch', methods=['POST'])
def switch_model():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'message': 'Request body must be a JSON object'}), 400

    try:
        target = Consumer(data.get('target'))
    except ValueError:
        valid = ', '.join(c.value for c in Consumer)
        return jsonify({'message': f"target must be one of: {valid}"}), 400

    runtime = get_service('model_runtime')
    switched = runtime.coordinator.request_switch(target)
    return jsonify({
        'switched': switched,
        'state': runtime.coordinator.state.to_dict(),
    }), 200 if switched else 409


@api_bp.route('/api/models/probe', methods=['POST'])
def probe_browser():
    """
    Evaluates a browser capability report with the same rules used for
    this host, so the front end can decide on in-browser inference.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'message': 'Request body must be a JSON object'}), 400

    try:
        hints = hints_from_browser(data)
    except ValueError as e:
        return jsonify({'message': str(e)}), 400

    result = probe(hints, get_service('model_runtime').settings.get('RAM_THRESHOLD_GB', 4))
    return jsonify(result.to_dict())


@api_bp.route('/api/translate', methods=['POST'])
def translate():
    """
    Body: {'texts': [str, ...], 'language'?: 'es' | 'spa_Latn'}
    The Accept-Language header is used when no language is given.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'message': 'Request body must be a JSON object'}), 400

    texts = data.get('texts')
    if not isinstance(texts, list) or not all(isinstance(t, str) for t in texts):
        return jsonify({'message': 'texts must be a list of strings'}), 400

    language = data.get('language') or request.accept_languages.best
    service = get_service('model_runtime').translation
    try:
        translated = service.translate(texts, language)
    except TranslationUnavailable as e:
        logger.info(f"[Translate] {e}")
        return jsonify({'message': str(e), 'texts': texts}), 503

    return jsonify({'texts': translated})
