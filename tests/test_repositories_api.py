import pytest

from cyberstack.core.errors import ConfigurationError


@pytest.fixture
def github(app, monkeypatch):
    github = app.extensions['github']
    monkeypatch.setattr(github, 'get_public_repositories', lambda: [{'name': 'engine'}, {'name': 'site'}])
    monkeypatch.setattr(github, 'get_repository', lambda name: {'name': name} if name == 'engine' else None)
    monkeypatch.setattr(github, 'get_readme', lambda name: '# Engine')
    return github


def test_list_includes_views(client, github):
    client.post('/api/views/engine', json={'uniqueId': 'u1'})
    repos = client.get('/api/repositories').get_json()['repositories']
    assert repos == [{'name': 'engine', 'views': 1}, {'name': 'site', 'views': 0}]


def test_repository_details(client, github):
    data = client.get('/api/repositories/engine').get_json()
    assert data == {'repository': {'name': 'engine'}, 'readme': '# Engine', 'views': 0}


def test_unknown_repository_is_404(client, github):
    assert client.get('/api/repositories/nope').status_code == 404


def test_missing_owner_is_503(client, app, monkeypatch):
    def missing_owner():
        raise ConfigurationError("GITHUB_REPO_OWNER environment variable is not set.")

    monkeypatch.setattr(app.extensions['github'], 'get_public_repositories', missing_owner)
    response = client.get('/api/repositories')
    assert response.status_code == 503
    assert 'GITHUB_REPO_OWNER' in response.get_json()['message']
