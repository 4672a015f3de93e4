from unittest import mock

import pytest
import requests

from cyberstack.core.errors import ConfigurationError
from cyberstack.core.services.github_client import GitHubClient


def make_response(status=200, json_data=None, text=''):
    response = mock.Mock()
    response.status_code = status
    response.ok = status < 400
    response.reason = 'OK' if status < 400 else 'Error'
    response.json.return_value = json_data
    response.text = text
    return response


@pytest.fixture
def session():
    return mock.Mock()


@pytest.fixture
def github(session):
    return GitHubClient('octocat', token='token', session=session)


def test_lists_public_repositories(github, session):
    session.get.return_value = make_response(json_data=[{'name': 'hello-world'}])
    assert github.get_public_repositories() == [{'name': 'hello-world'}]

    url = session.get.call_args.args[0]
    assert url.startswith('https://api.github.com/users/octocat/repos')
    assert session.get.call_args.kwargs['headers']['Authorization'] == 'Bearer token'


def test_repository_list_is_cached(github, session):
    session.get.return_value = make_response(json_data=[])
    github.get_public_repositories()
    github.get_public_repositories()
    assert session.get.call_count == 1


def test_cache_expires(session):
    github = GitHubClient('octocat', session=session, cache_seconds=0)
    session.get.return_value = make_response(json_data=[])
    github.get_public_repositories()
    github.get_public_repositories()
    assert session.get.call_count == 2


def test_list_failure_returns_empty(github, session):
    session.get.return_value = make_response(status=500)
    assert github.get_public_repositories() == []


def test_transport_failure_returns_empty(github, session):
    session.get.side_effect = requests.ConnectionError("offline")
    assert github.get_public_repositories() == []


def test_missing_repository_is_none(github, session):
    session.get.return_value = make_response(status=404)
    assert github.get_repository('missing') is None


def test_readme_uses_raw_media_type(github, session):
    session.get.return_value = make_response(text='# Hello')
    assert github.get_readme('hello-world') == '# Hello'
    assert session.get.call_args.kwargs['headers']['Accept'] == 'application/vnd.github.raw+json'


def test_missing_owner_is_configuration_error(session):
    github = GitHubClient(None, session=session)
    with pytest.raises(ConfigurationError):
        github.get_public_repositories()
    session.get.assert_not_called()


def test_malformed_details_is_none(github, session):
    response = make_response()
    response.json.side_effect = ValueError("Expecting value")
    session.get.return_value = response
    assert github.get_repository('hello-world') is None
