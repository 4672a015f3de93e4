import logging
from flask import jsonify
from cyberstack.core.errors import ConfigurationError
from . import api_bp, get_service

logger = logging.getLogger(__name__)


@api_bp.route('/api/repositories', methods=['GET'])
def list_repositories():
    """Public repositories with their view counters attached."""
    try:
        repos = get_service('github').get_public_repositories()
    except ConfigurationError as e:
        return jsonify({'message': str(e)}), 503

    views = get_service('view_store').get_multiple_views([r.get('name') for r in repos if r.get('name')])
    return jsonify({
        'repositories': [dict(repo, views=views.get(repo.get('name'), 0)) for repo in repos]
    })


@api_bp.route('/api/repositories/<name>', methods=['GET'])
def get_repository(name):
    github = get_service('github')
    try:
        details = github.get_repository(name)
        if details is None:
            return jsonify({'message': 'Repository not found'}), 404
        readme = github.get_readme(name)
    except ConfigurationError as e:
        return jsonify({'message': str(e)}), 503

    return jsonify({
        'repository': details,
        'readme': readme,
        'views': get_service('view_store').get_views(name),
    })
