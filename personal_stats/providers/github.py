import logging
from typing import Optional

import requests

from personal_stats.config import GitHubConfig
from personal_stats.errors import InvalidUpstreamResponse, MissingCredential, TransportFailure
from personal_stats.transformers import flatten_repository
from personal_stats.utils.retry import with_retry

logger = logging.getLogger(__name__)

GRAPHQL_URL = "https://api.github.com/graphql"
MAX_REPOS = 12

QUERY_TEMPLATE = """query {
  user(login: "%(username)s") {
    repositories(
      last: %(max_repos)d,
      isFork: false,
      affiliations: OWNER,
      privacy: PUBLIC,
      orderBy: {field: CREATED_AT, direction: ASC}
    ) {
      nodes {
        name
        description
        url
        primaryLanguage {
          name
          color
        }
        stargazers {
          totalCount
        }
        forks {
          totalCount
        }
      }
    }
  }
}
"""


def build_query(username: str, max_repos: int = MAX_REPOS) -> str:
    return QUERY_TEMPLATE % {"username": username, "max_repos": max_repos}


@with_retry(max_retries=2, base_delay=2.0, exceptions=(requests.ConnectionError, requests.Timeout))
def _post_query(http, token: str, query: str) -> dict:
    resp = http.post(
        GRAPHQL_URL,
        json={"query": query},
        headers={"Authorization": f"bearer {token}"},
        timeout=30,
    )
    if resp.status_code >= 500:
        raise requests.ConnectionError(f"Server error: {resp.status_code}")
    resp.raise_for_status()
    return resp.json()


def get_latest_repositories(
    config: GitHubConfig,
    session: Optional[requests.Session] = None,
    max_repos: int = MAX_REPOS,
) -> list[dict]:
    """Most recently created public repositories owned by the user."""
    if not config.access_token:
        raise MissingCredential("Missing required environment variable: GITHUB_ACCESS_TOKEN")
    if not config.username:
        raise MissingCredential("Missing required environment variable: GITHUB_USERNAME")

    query = build_query(config.username, max_repos)
    try:
        body = _post_query(session or requests, config.access_token, query)
    except requests.RequestException as e:
        raise TransportFailure(f"GitHub GraphQL request failed: {e}") from e
    except ValueError as e:
        raise InvalidUpstreamResponse("Invalid response from GitHub GraphQL API") from e

    if not isinstance(body, dict):
        raise InvalidUpstreamResponse("Invalid response from GitHub GraphQL API")
    if body.get("errors"):
        messages = "; ".join(err.get("message", "") for err in body["errors"])
        raise InvalidUpstreamResponse(f"GitHub GraphQL API returned errors: {messages}")

    try:
        nodes = body["data"]["user"]["repositories"]["nodes"]
    except (KeyError, TypeError) as e:
        raise InvalidUpstreamResponse("Invalid response from GitHub GraphQL API") from e
    if not isinstance(nodes, list):
        raise InvalidUpstreamResponse("Invalid response from GitHub GraphQL API")

    logger.info("Fetched %d repositories for %s", len(nodes), config.username)
    return [flatten_repository(repo) for repo in nodes]
