"""HTTP surface: canonical-link redirector and the GitHub webhook receiver.

Serve with any ASGI server, e.g. ``create_app_from_config`` as a factory.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Header, Request, Response, status
from fastapi.responses import PlainTextResponse

from .config import DEFAULT_REDIRECT_URL, load_config
from .logging import get_logger
from .orchestrator import CanonicalOrchestrator, GitHubApp
from .runtime import build_github_app, build_store
from .synchronizer import repository_coordinates

_NUMBER = re.compile(r"[0-9]+")


def create_app(
    *,
    redirect_target_url: str = DEFAULT_REDIRECT_URL,
    orchestrator: CanonicalOrchestrator | None = None,
    github_app: GitHubApp | None = None,
) -> FastAPI:
    logger = get_logger()
    api = FastAPI(title="issuecanon")

    @api.get("/b/{segment:path}")
    async def redirect(segment: str) -> Response:
        if not _NUMBER.fullmatch(segment):
            return PlainTextResponse(
                f"Invalid request to bug redirector: /{segment}",
                status_code=status.HTTP_404_NOT_FOUND,
            )
        logger.debug("redirecting canonical link", canonical_id=int(segment))
        return PlainTextResponse(
            f"Redirecting to {redirect_target_url}",
            status_code=status.HTTP_301_MOVED_PERMANENTLY,
            headers={"Location": redirect_target_url},
        )

    @api.post("/webhook")
    async def webhook(
        request: Request, x_github_event: str | None = Header(default=None)
    ) -> dict[str, Any]:
        payload = await request.json()
        if x_github_event != "issues" or payload.get("action") != "opened":
            return {"handled": False}
        if orchestrator is None or github_app is None:
            logger.warning("issues.opened received but no orchestrator configured")
            return {"handled": False}

        installation = payload.get("installation") or {}
        if "id" not in installation:
            logger.warning("issues.opened received without an installation id")
            return {"handled": False}
        github = await github_app.auth(int(installation["id"]))
        owner, repo = repository_coordinates(payload["repository"])
        number = int(payload["issue"]["number"])
        await orchestrator.add_issue(github, owner, repo, number)
        return {"handled": True}

    return api


def create_app_from_config(config_path: str | Path = "issuecanon.config.yaml") -> FastAPI:
    cfg = load_config(config_path)
    github_app = build_github_app(cfg)
    orchestrator = CanonicalOrchestrator.from_config(cfg, github_app, build_store(cfg))
    return create_app(
        redirect_target_url=cfg.redirect_target_url,
        orchestrator=orchestrator,
        github_app=github_app,
    )


__all__ = ["create_app", "create_app_from_config"]
