"""bugsync CLI: run the webhook server and inspect what the bot would do."""

import json
from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from rich import print as rprint
from rich.markup import escape
from rich.table import Table

from bugsync import log
from bugsync.clients.base import BugNotFoundError, BugzillaError
from bugsync.clients.bugzilla import BugzillaClient
from bugsync.clients.github import GitHubClient
from bugsync.comments import make_footer
from bugsync.help import COMMANDS, DESCRIPTION, describe_policy, describe_repo
from bugsync.models import BranchPolicy, BugState
from bugsync.policy import load_policy
from bugsync.server import create_app, dispatch
from bugsync.settings import BotSettings, get_settings
from bugsync.validation import validate_bug

app = typer.Typer(help="bugsync: keep pull requests and Bugzilla bugs in step", no_args_is_help=True)

PolicyOpt = Annotated[
    Path | None,
    typer.Option("--policy", "-P", help="Branch policy TOML (default: BUGSYNC_POLICY_PATH)"),
]

_NOT_SET = "[dim](not set)[/dim]"


# ---------------------------------------------------------------------------
# Client factory
# ---------------------------------------------------------------------------


def get_clients(settings: BotSettings) -> tuple[GitHubClient, BugzillaClient]:
    return GitHubClient(settings), BugzillaClient(settings)


def _policy_path(policy: Path | None) -> Path:
    return policy or BotSettings().policy_path


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _shown(value: object) -> str:
    if value is None:
        return _NOT_SET
    if isinstance(value, BugState):
        return value.pretty()
    if isinstance(value, list):
        return ", ".join(_shown(item) for item in value)
    return str(value)


def _policy_table(policy: BranchPolicy, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for field in BranchPolicy.model_fields:
        table.add_row(field, _shown(getattr(policy, field)))
    return table


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Interface to bind")] = "0.0.0.0",
    port: Annotated[int, typer.Option("--port", "-p", help="Port to listen on")] = 8888,
    policy: PolicyOpt = None,
    log_level: Annotated[str | None, typer.Option("--log-level", help="Overrides BUGSYNC_LOG_LEVEL")] = None,
) -> None:
    """Listen for GitHub webhook deliveries on POST /hook."""
    log.configure(log_level)
    settings = get_settings(policy_path=policy)
    gc, bc = get_clients(settings)
    secret = settings.webhook_secret.get_secret_value() if settings.webhook_secret else None
    if secret is None:
        rprint("[yellow]Warning:[/yellow] BUGSYNC_WEBHOOK_SECRET is not set; deliveries will not be verified.")
    server = create_app(
        gc,
        bc,
        load_policy(settings.policy_path),
        secret=secret,
        footer=make_footer(settings.instructions_url, settings.issues_url),
    )
    uvicorn.run(server, host=host, port=port, log_config=None)


@app.command("replay")
def replay(
    event: Annotated[str, typer.Argument(help="GitHub event kind (pull_request or issue_comment)")],
    payload: Annotated[Path, typer.Argument(help="Saved webhook delivery body", exists=True, dir_okay=False)],
    policy: PolicyOpt = None,
) -> None:
    """Process a saved webhook delivery as if it had just arrived."""
    log.configure()
    settings = get_settings(policy_path=policy)
    gc, bc = get_clients(settings)
    footer = make_footer(settings.instructions_url, settings.issues_url)
    outcome = dispatch(event, json.loads(payload.read_text()), gc, bc, load_policy(settings.policy_path), footer)
    rprint(f"[bold]{outcome.status}[/bold]")
    if outcome.comment:
        typer.echo(outcome.comment)


@app.command("validate")
def validate(
    org: Annotated[str, typer.Argument(help="GitHub organization")],
    repo: Annotated[str, typer.Argument(help="GitHub repository")],
    branch: Annotated[str, typer.Argument(help="Base branch whose policy applies")],
    bug_id: Annotated[int, typer.Argument(help="Bugzilla bug ID")],
    policy: PolicyOpt = None,
) -> None:
    """Check a bug against a branch policy without changing anything."""
    settings = get_settings(policy_path=policy)
    _, bc = get_clients(settings)
    options = load_policy(settings.policy_path).options_for(org, repo, branch)
    try:
        bug = bc.get_bug(bug_id)
        dependents = bc.get_bugs(bug.depends_on) if options.checks_dependents() else []
    except BugNotFoundError:
        rprint(f"[red]No Bugzilla bug with ID {bug_id} exists at {bc.endpoint}.[/red]")
        raise typer.Exit(1)
    except BugzillaError as exc:
        rprint(f"[red]Bugzilla error: {exc}[/red]")
        raise typer.Exit(1)

    verdict = validate_bug(bug, dependents, options, bc.endpoint)
    table = Table(title=f"Bug {bug.id} on {org}/{repo}@{branch}")
    table.add_column("Result", style="bold")
    table.add_column("Detail")
    for line in verdict.validations:
        table.add_row("[green]✓[/green]", escape(line))
    for line in verdict.reasons:
        table.add_row("[red]✗[/red]", escape(line))
    rprint(table)
    if verdict.valid:
        rprint(f"[green]Bug {bug.id} is valid.[/green]")
    else:
        rprint(f"[red]Bug {bug.id} is invalid.[/red]")
        raise typer.Exit(1)


@app.command("policy-show")
def policy_show(
    org: Annotated[str, typer.Argument(help="GitHub organization")],
    repo: Annotated[str, typer.Argument(help="GitHub repository")],
    branch: Annotated[str, typer.Argument(help="Base branch")],
    policy: PolicyOpt = None,
) -> None:
    """Show the resolved policy for a branch after layering."""
    options = load_policy(_policy_path(policy)).options_for(org, repo, branch)
    rprint(_policy_table(options, f"Policy for {org}/{repo}@{branch}"))
    rprint(escape(describe_policy(options)))


@app.command("commands")
def commands(
    org: Annotated[str | None, typer.Option("--org", help="Organization of the repo to describe")] = None,
    repo: Annotated[str | None, typer.Option("--repo", help="Repository to describe, used with --org")] = None,
    policy: PolicyOpt = None,
) -> None:
    """List the slash-commands the bot answers on pull requests."""
    if (org is None) != (repo is None):
        rprint("[red]--org and --repo must be given together.[/red]")
        raise typer.Exit(1)
    rprint(DESCRIPTION)
    table = Table(title="Commands")
    table.add_column("Usage", style="cyan")
    table.add_column("Description")
    for command in COMMANDS:
        table.add_row(command.usage, f"[dim]{command.description}[/dim]" if command.deprecated else command.description)
    rprint(table)
    if org is not None and repo is not None:
        rprint(f"\n[bold]Policy for {org}/{repo}[/bold]")
        for line in describe_repo(load_policy(_policy_path(policy)), org, repo):
            rprint(f"- {escape(line)}")


@app.command("config-show")
def config_show() -> None:
    """Show resolved configuration (masks credentials)."""
    settings = BotSettings()

    def mask(val: str | None) -> str:
        if val is None:
            return _NOT_SET
        if len(val) <= 5:
            return "***"
        return f"...{val[-5:]}"

    table = Table(title="bugsync Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("github_token", mask(settings.github_token.get_secret_value() if settings.github_token else None))
    table.add_row("github_api_url", settings.github_api_url)
    table.add_row(
        "webhook_secret", mask(settings.webhook_secret.get_secret_value() if settings.webhook_secret else None)
    )
    table.add_row("bugzilla_endpoint", settings.bugzilla_endpoint or _NOT_SET)
    table.add_row(
        "bugzilla_api_key", mask(settings.bugzilla_api_key.get_secret_value() if settings.bugzilla_api_key else None)
    )
    table.add_row("policy_path", str(settings.policy_path))
    rprint(table)
