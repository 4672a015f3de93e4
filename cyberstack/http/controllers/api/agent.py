import logging
from flask import request, jsonify
from cyberstack.core.errors import ApiError, ConfigurationError
from . import api_bp, get_service

logger = logging.getLogger(__name__)

APOLOGY = "I'm having trouble responding right now. Please try again in a moment."


@api_bp.route('/api/agent-context', methods=['GET'])
def get_agent_context():
    """System instruction plus the raw profile/repository context behind it."""
    try:
        return jsonify(get_service('agent_context').build())
    except (OSError, ValueError) as e:
        logger.error(f"[Agent Context] Failed to build context: {e}")
        return jsonify({'message': 'Failed to load agent context'}), 500


@api_bp.route('/api/chat', methods=['POST'])
def chat():
    """
    Hybrid chat turn. Body: {'messages': [{role, content}, ...], 'chatId'?: str}
    Replies with the assistant text, the backend that produced it and the
    logged transcript.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'message': 'Request body must be a JSON object'}), 400

    runtime = get_service('model_runtime')
    try:
        result = runtime.chat.reply(data.get('messages'), chat_id=data.get('chatId'))
    except ValueError as e:
        return jsonify({'message': str(e)}), 400
    except ConfigurationError as e:
        logger.error(f"[Chat] {e}")
        return jsonify({'message': str(e)}), 503
    except ApiError as e:
        logger.error(f"[Chat] Remote generation failed: {e}")
        return jsonify({'message': 'Remote model request failed', 'reply': APOLOGY}), 502
    except OSError as e:
        logger.error(f"[Chat] Agent context unavailable: {e}")
        return jsonify({'message': 'Failed to load agent context'}), 500

    return jsonify(result)
