"""Bot settings: credentials, endpoints and where the branch policy lives."""

from pathlib import Path

import typer
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

POLICY_PATH = Path.home() / ".config" / "bugsync" / "policy.toml"

DEFAULT_INSTRUCTIONS_URL = "https://docs.github.com/en/pull-requests"
DEFAULT_ISSUES_URL = "https://github.com/bugsync/bugsync/issues/new"


class BotSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BUGSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # GitHub
    github_token: SecretStr | None = None
    github_api_url: str = "https://api.github.com"
    webhook_secret: SecretStr | None = None  # unset disables signature checks

    # Bugzilla
    bugzilla_endpoint: str | None = None  # e.g. https://bugzilla.example.com
    bugzilla_api_key: SecretStr | None = None

    # Policy + replies
    policy_path: Path = POLICY_PATH
    instructions_url: str = DEFAULT_INSTRUCTIONS_URL
    issues_url: str = DEFAULT_ISSUES_URL


def get_settings(**overrides: object) -> BotSettings:
    """Build settings from env vars and .env, then check the bot can talk to both remotes.

    overrides take precedence over the environment (used for CLI flags).
    """
    settings = BotSettings(**{k: v for k, v in overrides.items() if v is not None})  # type: ignore[arg-type]

    if not settings.github_token:
        typer.echo("Missing GitHub credentials. Set BUGSYNC_GITHUB_TOKEN or add it to .env.")
        raise typer.Exit(1)
    if not settings.bugzilla_endpoint:
        typer.echo("Missing Bugzilla endpoint. Set BUGSYNC_BUGZILLA_ENDPOINT or add it to .env.")
        raise typer.Exit(1)

    return settings
