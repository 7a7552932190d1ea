# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Pipeline CLI Commands

Commands:
- pipeline run: Run one content item through the trust pipeline (in-memory store)
- policy eval: Evaluate the moderation policy over claims and fact-checks
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, NoReturn

from pydantic import ValidationError


class InputError(ValueError):
    pass


def _load_json(path_arg: str) -> Any:
    path = Path(path_arg)
    if not path.exists():
        raise InputError(f"File not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InputError(f"Failed to parse JSON in {path}: {e}") from e


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def cmd_pipeline_run(args: argparse.Namespace) -> int:
    """Run the content pipeline over an in-memory store."""
    from kurral_core.config import KurralConfig
    from kurral_core.pipeline import ContentPipeline
    from kurral_core.schema.content import Comment, ContentItem
    from kurral_core.storage.adapters import InMemoryKurralStore

    raw_item = _load_json(args.item_file)
    if not isinstance(raw_item, dict):
        raise InputError("Item JSON must be an object.")
    raw_comments = _load_json(args.comments) if args.comments else []
    if not isinstance(raw_comments, list):
        raise InputError("Comments JSON must be a list.")

    try:
        item = ContentItem.from_dict(raw_item)
        comments = [Comment.from_dict({"content_id": item.id, **c}) for c in raw_comments]
    except (ValidationError, TypeError) as e:
        raise InputError(f"Invalid input document: {e}") from e

    store = InMemoryKurralStore()
    store.save_content(item)
    for comment in comments:
        store.save_comment(comment)

    config = KurralConfig(openai_api_key=os.getenv("OPENAI_API_KEY"))
    pipeline = ContentPipeline(config, store)
    outcome = asyncio.run(pipeline.process(item.id))

    stored = store.get_content(item.id)
    trust = store.get_trust_score(item.author_id)
    stats = store.get_value_stats(item.author_id)
    _emit({
        "outcome": outcome.status.value,
        "failed_stages": outcome.failed_stages,
        "error": outcome.error,
        "item": stored.to_dict() if stored else None,
        "kurral_score": trust.to_dict() if trust else None,
        "value_stats": stats.to_dict() if stats else None,
    })
    return 0


def cmd_policy_eval(args: argparse.Namespace) -> int:
    """Evaluate the policy over a {claims, fact_checks} document."""
    from kurral_core.policy import evaluate_policy
    from kurral_core.schema.content import Claim, FactCheck

    payload = _load_json(args.claims_file)
    if not isinstance(payload, dict) or not isinstance(payload.get("claims", []), list):
        raise InputError("Policy JSON must be {claims: [...], fact_checks: [...]}.")

    try:
        claims = [Claim.from_dict(c) for c in payload.get("claims") or []]
        fact_checks = [FactCheck.from_dict(f) for f in payload.get("fact_checks") or []]
    except (ValidationError, TypeError) as e:
        raise InputError(f"Invalid claim or fact-check: {e}") from e

    decision = evaluate_policy(claims, fact_checks, confident_false_threshold=args.threshold)
    _emit({
        "status": decision.status.value,
        "reasons": list(decision.reasons),
        "escalate_to_human": decision.escalate_to_human,
    })
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kurral-cli",
        description="Kurral trust pipeline commands",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log pipeline progress to stderr",
    )

    groups = parser.add_subparsers(dest="group", required=True)

    # pipeline
    pipeline_parser = groups.add_parser("pipeline", help="Content pipeline commands")
    pipeline_commands = pipeline_parser.add_subparsers(dest="command", required=True)

    run_parser = pipeline_commands.add_parser(
        "run",
        help="Run one content item through the pipeline",
    )
    run_parser.add_argument(
        "item_file",
        help="Path to JSON file with the content item",
    )
    run_parser.add_argument(
        "--comments", "-c",
        help="Path to JSON file with a list of comments on the item",
    )
    run_parser.set_defaults(func=cmd_pipeline_run)

    # policy
    policy_parser = groups.add_parser("policy", help="Moderation policy commands")
    policy_commands = policy_parser.add_subparsers(dest="command", required=True)

    eval_parser = policy_commands.add_parser(
        "eval",
        help="Evaluate the policy over claims and fact-checks",
    )
    eval_parser.add_argument(
        "claims_file",
        help="Path to JSON file ({claims:[...], fact_checks:[...]})",
    )
    eval_parser.add_argument(
        "--threshold", "-t",
        type=float,
        default=0.7,
        help="Confidence above which a false verdict blocks (default: 0.7)",
    )
    eval_parser.set_defaults(func=cmd_policy_eval)

    return parser


def run(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return args.func(args)
    except InputError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI."""
    try:
        sys.exit(run(argv))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
