"""issuecanon CLI.

Subcommands:
  sync      -> populate / read the issue cache for every installed repository
  allocate  -> sync, then assign canonical IDs (optionally writing them back)
  inspect   -> decode an issue body and print its sections and metadata
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections import Counter
from pathlib import Path
from typing import Any

from issuecanon.concurrency import AsyncGitHubApp
from issuecanon.config import CanonConfig
from issuecanon.orchestrator import CanonicalOrchestrator
from issuecanon.parser import parse_issue_body
from issuecanon.runtime import build_github_app, build_store, execute_command, prepare_config

CONFIG_DEFAULT = "issuecanon.config.yaml"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="issuecanon", description="Canonical issue numbering across GitHub repositories"
    )
    p.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    ps = sub.add_parser("sync", help="Fetch (or read cached) issues for all repositories")
    ps.add_argument("--config", default=CONFIG_DEFAULT)
    ps.add_argument("--json", action="store_true", help="Print per-repository counts as JSON")

    pa = sub.add_parser("allocate", help="Assign canonical IDs to unnumbered issues")
    pa.add_argument("--config", default=CONFIG_DEFAULT)
    pa.add_argument(
        "--write-back",
        action="store_true",
        help="Persist assigned IDs to the cache and issue bodies (overrides config)",
    )
    pa.add_argument("--summary-json", help="Write the allocation summary to this file")

    pi = sub.add_parser("inspect", help="Decode an issue body file ('-' for stdin)")
    pi.add_argument("path")
    return p


def _orchestrator(cfg: CanonConfig) -> tuple[AsyncGitHubApp, CanonicalOrchestrator]:
    github_app = build_github_app(cfg)
    return github_app, CanonicalOrchestrator.from_config(cfg, github_app, build_store(cfg))


def _cmd_sync(cfg: CanonConfig, args: argparse.Namespace) -> int:
    github_app, orchestrator = _orchestrator(cfg)

    async def _run() -> Counter[str]:
        with github_app:
            contexts = await orchestrator.get_issues()
        return Counter(f"{c.issue.owner}/{c.issue.repo}" for c in contexts)

    counts = asyncio.run(_run())
    if args.json:
        print(json.dumps(dict(sorted(counts.items())), indent=2))
    else:
        for repo, count in sorted(counts.items()):
            print(f"{repo}: {count}")
        print(f"total: {sum(counts.values())}")
    return 0


def _cmd_allocate(cfg: CanonConfig, args: argparse.Namespace) -> int:
    github_app, orchestrator = _orchestrator(cfg)
    write_back = True if args.write_back else None

    async def _run() -> dict[str, Any]:
        with github_app:
            summary = await orchestrator.initialise(write_back=write_back)
        return summary.to_dict()

    payload = asyncio.run(_run())
    if args.summary_json:
        path = Path(args.summary_json)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    totals = payload["totals"]
    print(
        f"issues: {totals['issues']} known: {totals['known']} assigned: {totals['assigned']}"
        + (" (written back)" if payload["written_back"] else "")
    )
    return 0


def _cmd_inspect(args: argparse.Namespace) -> int:
    text = sys.stdin.read() if args.path == "-" else Path(args.path).read_text(encoding="utf-8")
    body = parse_issue_body(text)
    print(json.dumps(body.to_document(), indent=2))
    return 0


def _require_cfg(cfg: CanonConfig | None) -> CanonConfig:
    if cfg is None:  # pragma: no cover - defensive guard
        raise RuntimeError("Configuration not loaded")
    return cfg


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    cfg = prepare_config(args)
    handlers = {
        "sync": lambda: _cmd_sync(_require_cfg(cfg), args),
        "allocate": lambda: _cmd_allocate(_require_cfg(cfg), args),
        "inspect": lambda: _cmd_inspect(args),
    }
    handler = handlers.get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 1
    return execute_command(handler, args.cmd)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
