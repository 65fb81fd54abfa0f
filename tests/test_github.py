import json

import pytest
import responses

from personal_stats.config import GitHubConfig
from personal_stats.errors import InvalidUpstreamResponse, MissingCredential
from personal_stats.providers.github import GRAPHQL_URL, build_query, get_latest_repositories


def test_build_query():
    query = build_query("octocat", 5)

    assert 'user(login: "octocat")' in query
    assert "last: 5" in query
    assert "isFork: false" in query
    assert "privacy: PUBLIC" in query
    assert "affiliations: OWNER" in query
    assert "orderBy: {field: CREATED_AT, direction: ASC}" in query


@responses.activate
def test_get_latest_repositories_flattens_counts(github_config):
    responses.add(
        responses.POST,
        GRAPHQL_URL,
        json={
            "data": {
                "user": {
                    "repositories": {
                        "nodes": [
                            {
                                "name": "dotfiles",
                                "description": None,
                                "url": "https://github.com/test-user/dotfiles",
                                "primaryLanguage": {"name": "Shell", "color": "#89e051"},
                                "stargazers": {"totalCount": 7},
                                "forks": {"totalCount": 2},
                            }
                        ]
                    }
                }
            }
        },
        status=200,
    )

    repos = get_latest_repositories(github_config)

    assert repos == [
        {
            "name": "dotfiles",
            "description": None,
            "url": "https://github.com/test-user/dotfiles",
            "primaryLanguage": {"name": "Shell", "color": "#89e051"},
            "stargazers": 7,
            "forks": 2,
        }
    ]
    request = responses.calls[0].request
    assert request.headers["Authorization"] == "bearer ghp_test"
    assert "last: 12" in json.loads(request.body)["query"]


@responses.activate
def test_graphql_errors_raise(github_config):
    responses.add(
        responses.POST,
        GRAPHQL_URL,
        json={"errors": [{"message": "Could not resolve to a User"}]},
        status=200,
    )

    with pytest.raises(InvalidUpstreamResponse, match="Could not resolve to a User"):
        get_latest_repositories(github_config)


@responses.activate
def test_missing_nodes_raise(github_config):
    responses.add(responses.POST, GRAPHQL_URL, json={"data": {"user": None}}, status=200)

    with pytest.raises(InvalidUpstreamResponse):
        get_latest_repositories(github_config)


def test_missing_token():
    with pytest.raises(MissingCredential):
        get_latest_repositories(GitHubConfig(username="test-user", access_token=""))


def test_missing_username():
    with pytest.raises(MissingCredential, match="GITHUB_USERNAME"):
        get_latest_repositories(GitHubConfig(username="", access_token="ghp_test"))
