"""Bugzilla REST API client (JSON-RPC for the ExternalBugs extension)."""

import httpx

from bugsync.clients.base import BugNotFoundError, BugTracker, BugzillaError
from bugsync.models import Bug, BugComment, BugCreate, BugUpdate, ExternalBug
from bugsync.settings import BotSettings

GITHUB_EXTERNAL_TYPE = "https://github.com/"

# Bugzilla error code for "bug does not exist".
_INVALID_BUG_ID = 101

_BUG_FIELDS = ",".join(
    [
        "id",
        "status",
        "resolution",
        "is_open",
        "target_release",
        "severity",
        "product",
        "component",
        "version",
        "summary",
        "depends_on",
        "blocks",
        "qa_contact",
    ]
)


def _as_list(value: object) -> list:
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


def _bug_from_node(node: dict) -> Bug:
    return Bug(
        id=node["id"],
        status=node.get("status", ""),
        resolution=node.get("resolution", ""),
        is_open=bool(node.get("is_open")),
        target_release=_as_list(node.get("target_release")),
        severity=node.get("severity", ""),
        product=node.get("product", ""),
        component=_as_list(node.get("component")),
        version=_as_list(node.get("version")),
        summary=node.get("summary", ""),
        depends_on=node.get("depends_on", []),
        blocks=node.get("blocks", []),
        qa_contact=node.get("qa_contact") or None,
    )


def _parse_external_id(bug_id: int, external_id: str) -> ExternalBug | None:
    """Parse "org/repo/pull/123"; anything else is not a pull request link."""
    parts = external_id.strip("/").split("/")
    if len(parts) != 4 or parts[2] != "pull" or not parts[3].isdigit():
        return None
    return ExternalBug(bug_id=bug_id, org=parts[0], repo=parts[1], number=int(parts[3]))


class BugzillaClient(BugTracker):
    def __init__(self, settings: BotSettings) -> None:
        if not settings.bugzilla_endpoint:
            raise RuntimeError("No Bugzilla endpoint. Set BUGSYNC_BUGZILLA_ENDPOINT.")
        self.endpoint = settings.bugzilla_endpoint.rstrip("/")
        self._api_key = settings.bugzilla_api_key.get_secret_value() if settings.bugzilla_api_key else ""
        self._headers = {"Accept": "application/json"}
        if self._api_key:
            self._headers["X-BUGZILLA-API-KEY"] = self._api_key

    def _request(self, method: str, path: str, body: dict | None = None, bug_id: int | None = None) -> dict:
        try:
            response = httpx.request(
                method,
                f"{self.endpoint}{path}",
                headers=self._headers,
                json=body,
                timeout=30,
            )
        except httpx.HTTPError as exc:
            raise BugzillaError(f"{method} {path} failed: {exc}") from exc
        if response.status_code == 401:
            raise BugzillaError("Bugzilla returned 401. Check BUGSYNC_BUGZILLA_API_KEY.")
        try:
            data = response.json()
        except ValueError:
            raise BugzillaError(f"Bugzilla returned {response.status_code}: {response.text}") from None
        error = data.get("error")
        if error:
            # REST puts code/message beside "error": true; JSON-RPC nests them under "error".
            detail = error if isinstance(error, dict) else data
            if bug_id is not None and detail.get("code") == _INVALID_BUG_ID:
                raise BugNotFoundError(bug_id)
            raise BugzillaError(detail.get("message") or f"Bugzilla returned error code {detail.get('code')}")
        if response.is_error:
            raise BugzillaError(f"Bugzilla returned {response.status_code}: {response.text}")
        return data

    def get_bug(self, bug_id: int) -> Bug:
        data = self._request("GET", f"/rest/bug/{bug_id}?include_fields={_BUG_FIELDS}", bug_id=bug_id)
        bugs = data.get("bugs", [])
        if not bugs:
            raise BugNotFoundError(bug_id)
        return _bug_from_node(bugs[0])

    def get_comments(self, bug_id: int) -> list[BugComment]:
        data = self._request("GET", f"/rest/bug/{bug_id}/comment", bug_id=bug_id)
        nodes = data.get("bugs", {}).get(str(bug_id), {}).get("comments", [])
        return [BugComment(bug_id=bug_id, count=n.get("count", i), text=n.get("text", "")) for i, n in enumerate(nodes)]

    def update_bug(self, bug_id: int, update: BugUpdate) -> None:
        body: dict = {}
        if update.status is not None:
            body["status"] = update.status
        if update.resolution is not None:
            body["resolution"] = update.resolution
        if update.depends_on_add:
            body["depends_on"] = {"add": update.depends_on_add}
        self._request("PUT", f"/rest/bug/{bug_id}", body, bug_id=bug_id)

    def create_bug(self, bug: BugCreate) -> int:
        body: dict = {
            "product": bug.product,
            "component": bug.component,
            "version": bug.version[0] if len(bug.version) == 1 else bug.version,
            "severity": bug.severity,
            "summary": bug.summary,
            "description": bug.description,
        }
        if bug.sub_components:
            body["sub_components"] = bug.sub_components
        return int(self._request("POST", "/rest/bug", body)["id"])

    def get_external_bugs(self, bug_id: int) -> list[ExternalBug]:
        data = self._request("GET", f"/rest/bug/{bug_id}?include_fields=external_bugs", bug_id=bug_id)
        bugs = data.get("bugs", [])
        if not bugs:
            raise BugNotFoundError(bug_id)
        links = []
        for node in bugs[0].get("external_bugs", []):
            if node.get("type", {}).get("url") != GITHUB_EXTERNAL_TYPE:
                continue
            link = _parse_external_id(bug_id, node.get("ext_bz_bug_id", ""))
            if link is not None:
                links.append(link)
        return links

    def add_pull_request_as_external_bug(self, bug_id: int, org: str, repo: str, number: int) -> bool:
        params: dict = {
            "bug_ids": [bug_id],
            "external_bugs": [{"ext_type_url": GITHUB_EXTERNAL_TYPE, "ext_bz_bug_id": f"{org}/{repo}/pull/{number}"}],
        }
        if self._api_key:
            params["api_key"] = self._api_key
        rpc = {"jsonrpc": "1.0", "method": "ExternalBugs.add_external_bug", "params": [params], "id": "bugsync"}
        data = self._request("POST", "/jsonrpc.cgi", rpc, bug_id=bug_id)
        for changed in (data.get("result") or {}).get("bugs", []):
            for change in changed.get("changes", {}).values():
                if change.get("added"):
                    return True
        return False

    def get_sub_components(self, bug_id: int) -> dict[str, list[str]]:
        data = self._request("GET", f"/rest/bug/{bug_id}?include_fields=sub_components", bug_id=bug_id)
        bugs = data.get("bugs", [])
        if not bugs:
            raise BugNotFoundError(bug_id)
        return bugs[0].get("sub_components") or {}
