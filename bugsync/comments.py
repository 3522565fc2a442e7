"""Rendering of the bot's pull request comments."""

from bugsync.clients.base import CodeHost
from bugsync.models import Event
from bugsync.settings import DEFAULT_INSTRUCTIONS_URL, DEFAULT_ISSUES_URL

REFRESH_COMMAND = "/bugzilla refresh"
REFRESH_HINT = f"request a bug refresh with <code>{REFRESH_COMMAND}</code>"


def make_footer(instructions_url: str, issues_url: str) -> str:
    return (
        f"Instructions for interacting with me using PR comments are available [here]({instructions_url}).  "
        "If you have questions or suggestions related to my behavior, "
        f"please file an issue [here]({issues_url})."
    )


DEFAULT_FOOTER = make_footer(DEFAULT_INSTRUCTIONS_URL, DEFAULT_ISSUES_URL)


def quote(text: str) -> str:
    return "\n".join(f">{line}" for line in text.splitlines())


def format_response(login: str, text: str, body: str, html_url: str, footer: str = DEFAULT_FOOTER) -> str:
    """Address text to login, quoting the triggering body and closing with the footer."""
    return (
        f"@{login}: {text}\n\n"
        "<details>\n\n"
        f"In response to [this]({html_url}):\n\n"
        f"{quote(body)}\n\n\n"
        f"{footer}\n"
        "</details>"
    )


def bug_link(bug_id: int, endpoint: str) -> str:
    return f"[Bugzilla bug {bug_id}]({endpoint}/show_bug.cgi?id={bug_id})"


def pr_link(org: str, repo: str, number: int) -> str:
    return f"[{org}/{repo}#{number}](https://github.com/{org}/{repo}/pull/{number})"


def quote_error(error: Exception) -> str:
    return "\n".join(f"> {line}" for line in str(error).splitlines())


def remote_failure(lead: str, endpoint: str, error: Exception) -> str:
    """Templated message surfacing a raw Bugzilla error verbatim."""
    return (
        f"{lead} on the Bugzilla server at {endpoint}:\n"
        f"{quote_error(error)}\n"
        f"Please contact an administrator to resolve this issue, then {REFRESH_HINT}."
    )


def remote_error(action: str, endpoint: str, error: Exception) -> str:
    return remote_failure(f"An error was encountered {action}", endpoint, error)


class Reply:
    """Posts the single comment an invocation is allowed to make."""

    def __init__(self, gc: CodeHost, event: Event, footer: str = DEFAULT_FOOTER) -> None:
        self._gc = gc
        self._event = event
        self._footer = footer
        self.posted: str | None = None

    def post(self, text: str) -> str:
        if self.posted is not None:
            raise RuntimeError("a reply was already posted for this event")
        e = self._event
        self.posted = format_response(e.login, text, e.body, e.html_url, self._footer)
        self._gc.create_comment(e.org, e.repo, e.number, self.posted)
        return self.posted
