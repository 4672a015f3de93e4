import logging
from flask import request, jsonify
from cyberstack.core.errors import StoreError
from . import api_bp, get_service

logger = logging.getLogger(__name__)


@api_bp.route('/api/views/<slug>', methods=['POST'])
def increment_views(slug):
    """Counts one view of `slug` per visitor per dedup window."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'message': 'Request body must be a JSON object'}), 400

    unique_id = data.get('uniqueId')
    if not unique_id or not isinstance(unique_id, str):
        return jsonify({'message': 'uniqueId is required'}), 400

    try:
        views = get_service('view_store').increment_view(slug, unique_id)
    except StoreError as e:
        logger.error(f"[Views] {e}")
        return jsonify({'message': 'Error incrementing view count'}), 500

    return jsonify({'views': views})


@api_bp.route('/api/views/<slug>', methods=['GET'])
def get_views(slug):
    return jsonify({'views': get_service('view_store').get_views(slug)})


@api_bp.route('/api/views', methods=['GET'])
def get_multiple_views():
    """Bulk read: /api/views?slug=a&slug=b -> {'views': {'a': n, 'b': m}}"""
    slugs = [s for s in request.args.getlist('slug') if s]
    if not slugs:
        return jsonify({'message': 'At least one slug query parameter is required'}), 400
    return jsonify({'views': get_service('view_store').get_multiple_views(slugs)})
