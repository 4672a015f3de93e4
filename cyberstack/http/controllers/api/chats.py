import uuid
import logging
from datetime import datetime, timezone
from flask import request, jsonify
from cyberstack.core.errors import StoreError
from . import api_bp, get_service

logger = logging.getLogger(__name__)


@api_bp.route('/api/log-chat', methods=['POST'])
def log_chat():
    """Stores the full transcript of a chat session, overwriting earlier saves."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'message': 'Request body must be a JSON object'}), 400

    messages = data.get('messages')
    if not isinstance(messages, list):
        return jsonify({'message': 'Invalid chat data'}), 400

    chat_id = data.get('chatId') or str(uuid.uuid4())
    chat_data = {
        'id': chat_id,
        'timestamp': data.get('timestamp') or datetime.now(timezone.utc).isoformat(),
        'messages': messages,
    }

    try:
        get_service('chat_store').save_chat(chat_id, chat_data)
    except StoreError as e:
        logger.error(f"[Chats] {e}")
        return jsonify({'message': 'Error logging chat'}), 500

    return jsonify({'success': True, 'logId': chat_id})


@api_bp.route('/api/chats', methods=['GET'])
def list_chats():
    try:
        chats = get_service('chat_store').list_chats()
    except StoreError as e:
        logger.error(f"[Chats] {e}")
        return jsonify({'message': 'Error fetching chats'}), 500
    return jsonify({'chats': chats})


@api_bp.route('/api/chats/<chat_id>', methods=['GET'])
def get_chat(chat_id):
    try:
        chat = get_service('chat_store').get_chat(chat_id)
    except StoreError as e:
        logger.error(f"[Chats] {e}")
        return jsonify({'message': 'Error fetching chat'}), 500

    if chat is None:
        return jsonify({'message': 'Chat not found'}), 404
    return jsonify(chat)
