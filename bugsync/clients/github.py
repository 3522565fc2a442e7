"""GitHub REST API v3 client (plus one GraphQL query for QA contact lookup)."""

from urllib.parse import quote

import httpx

from bugsync.clients.base import CodeHost, CodeHostError, PullRequestNotFoundError
from bugsync.models import PullRequest
from bugsync.settings import BotSettings

BASE_URL = "https://api.github.com"

_USERS_BY_EMAIL = """
query UsersByEmail($query: String!) {
  search(type: USER, query: $query, first: 5) {
    edges {
      node {
        ... on User {
          login
        }
      }
    }
  }
}
"""


def pull_request_from_node(node: dict, org: str, repo: str) -> PullRequest:
    """Build a PullRequest from a REST or webhook pull_request object."""
    return PullRequest(
        org=org,
        repo=repo,
        number=node["number"],
        title=node.get("title") or "",
        body=node.get("body") or "",
        state=node.get("state", "open"),
        merged=bool(node.get("merged")),
        base_ref=node.get("base", {}).get("ref", ""),
        html_url=node.get("html_url", ""),
        author=node.get("user", {}).get("login", ""),
    )


class GitHubClient(CodeHost):
    def __init__(self, settings: BotSettings) -> None:
        if not settings.github_token:
            raise RuntimeError("No GitHub credentials. Set BUGSYNC_GITHUB_TOKEN.")
        self._base_url = settings.github_api_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {settings.github_token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _request(self, method: str, path: str, body: dict | list | None = None) -> httpx.Response:
        try:
            response = httpx.request(
                method,
                f"{self._base_url}{path}",
                headers=self._headers,
                json=body,
                timeout=30,
            )
        except httpx.HTTPError as exc:
            raise CodeHostError(f"{method} {path} failed: {exc}") from exc
        if response.status_code == 401:
            raise CodeHostError("GitHub API returned 401. Check BUGSYNC_GITHUB_TOKEN.")
        return response

    def _checked(self, response: httpx.Response) -> httpx.Response:
        if response.is_error:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text or response.reason_phrase
            raise CodeHostError(f"GitHub API returned {response.status_code}: {message}")
        return response

    def get_pull_request(self, org: str, repo: str, number: int) -> PullRequest:
        response = self._request("GET", f"/repos/{org}/{repo}/pulls/{number}")
        if response.status_code == 404:
            raise PullRequestNotFoundError(org, repo, number)
        return pull_request_from_node(self._checked(response).json(), org, repo)

    def get_issue_labels(self, org: str, repo: str, number: int) -> list[str]:
        # NOTE: first page only (100 labels), far more than the bot ever manages.
        response = self._checked(self._request("GET", f"/repos/{org}/{repo}/issues/{number}/labels?per_page=100"))
        return [label["name"] for label in response.json()]

    def add_label(self, org: str, repo: str, number: int, label: str) -> None:
        self._checked(self._request("POST", f"/repos/{org}/{repo}/issues/{number}/labels", {"labels": [label]}))

    def remove_label(self, org: str, repo: str, number: int, label: str) -> None:
        response = self._request("DELETE", f"/repos/{org}/{repo}/issues/{number}/labels/{quote(label, safe='')}")
        # Already gone is fine: the caller wanted it absent.
        if response.status_code != 404:
            self._checked(response)

    def create_comment(self, org: str, repo: str, number: int, body: str) -> None:
        self._checked(self._request("POST", f"/repos/{org}/{repo}/issues/{number}/comments", {"body": body}))

    def find_logins_by_email(self, email: str) -> list[str]:
        payload = {"query": _USERS_BY_EMAIL, "variables": {"query": f"in:email {email}"}}
        data = self._checked(self._request("POST", "/graphql", payload)).json()
        if "errors" in data:
            raise CodeHostError(f"GitHub GraphQL error: {data['errors']}")
        edges = data["data"]["search"]["edges"]
        return [edge["node"]["login"] for edge in edges if edge.get("node", {}).get("login")]
