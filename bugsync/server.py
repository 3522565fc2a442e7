"""Webhook receiver: verifies GitHub deliveries and runs them through the handler."""

import hashlib
import hmac
import json
import logging

from fastapi import FastAPI, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from bugsync.clients.base import BugTracker, CodeHost, CodeHostError
from bugsync.comments import DEFAULT_FOOTER
from bugsync.events import digest_comment, digest_pr, pr_location
from bugsync.handler import handle
from bugsync.models import Outcome
from bugsync.policy import PolicyConfig

log = logging.getLogger(__name__)

IGNORED = Outcome(status="ignored")


def signature_valid(secret: str, body: bytes, signature: str | None) -> bool:
    mac = hmac.new(secret.encode(), msg=body, digestmod=hashlib.sha256)
    return hmac.compare_digest("sha256=" + mac.hexdigest(), signature or "")


def dispatch(
    kind: str,
    payload: dict,
    gc: CodeHost,
    bc: BugTracker,
    config: PolicyConfig,
    footer: str = DEFAULT_FOOTER,
) -> Outcome:
    """Normalize one delivery of the given GitHub event kind and handle it."""
    match kind:
        case "pull_request":
            org, repo, branch = pr_location(payload)
            validate_by_default = bool(config.options_for(org, repo, branch).validate_by_default)
            event = digest_pr(payload, validate_by_default)
        case "issue_comment":
            event = digest_comment(gc, payload, footer)
        case _:
            log.debug("ignoring %s delivery", kind)
            return IGNORED
    if event is None:
        return IGNORED
    policy = config.options_for(event.org, event.repo, event.base_ref)
    return handle(event, gc, bc, policy, footer)


def create_app(
    gc: CodeHost,
    bc: BugTracker,
    config: PolicyConfig,
    secret: str | None = None,
    footer: str = DEFAULT_FOOTER,
) -> FastAPI:
    app = FastAPI(title="bugsync", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/healthz")
    def healthz() -> dict:
        return {"status": "ok"}

    @app.post("/hook")
    async def hook(
        request: Request,
        x_github_event: str | None = Header(None),
        x_hub_signature_256: str | None = Header(None),
    ) -> dict:
        body = await request.body()
        if secret and not signature_valid(secret, body, x_hub_signature_256):
            raise HTTPException(status_code=401, detail="Invalid signature")
        if x_github_event == "ping":
            return {"msg": "pong"}
        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Body is not valid JSON") from exc

        try:
            outcome = await run_in_threadpool(dispatch, x_github_event or "", payload, gc, bc, config, footer)
        except CodeHostError as exc:
            log.error("GitHub call failed while handling %s delivery: %s", x_github_event, exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return outcome.model_dump()

    return app
