#!/usr/bin/env python3
"""Simulate respondents filling in forms end-to-end.

Each run opens a ConversationSession through HttpFormApi, answers every
visible block with a random valid answer (files included), presses
"next" until the conversation submits, and prints what happened.

By default the development server runs in-process (``httpx.ASGITransport``
over ``formflow_server.create_app``), so no server needs to be started.
Pass ``--base-url`` to drive a live server instead.

Usage::

    # All bundled forms, 3 runs each
    python scripts/simulate_conversation.py

    # One form, verbose Q&A output
    python scripts/simulate_conversation.py -f contact -n 1 -v

    # Against a running formflow-server
    python scripts/simulate_conversation.py --base-url http://localhost:8080

    # Reproducible run
    python scripts/simulate_conversation.py --seed 42
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
import time
from dataclasses import dataclass
from typing import Any

import httpx
from rich.console import Console
from rich.table import Table

from formflow_client.config import ClientSettings
from formflow_client.http import HttpFormApi
from formflow_runtime.conversation import ConversationSession
from formflow_runtime.errors import FormflowError
from formflow_runtime.interfaces import Navigator
from formflow_runtime.models.block import Block, BlockType
from formflow_runtime.models.payload import FileHandle
from formflow_runtime.storyboard import StoryboardStore

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_IN_PROCESS_URL = "http://formflow.local"

_TEXT_POOL = [
    "Works fine most of the time",
    "Not sure",
    "It crashed twice yesterday",
    "Nothing to add",
]

_FILE_TYPES = [
    ("screenshot.png", "image/png"),
    ("log.txt", "text/plain"),
    ("report.pdf", "application/pdf"),
]


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class RunResult:
    form_id: str
    run: int
    status: str = "pending"  # "submitted", "redirected", "failed"
    steps: int = 0
    answered: int = 0
    redirect_url: str | None = None
    error: str | None = None


class RecordingNavigator(Navigator):
    """Captures the redirect instead of leaving the page."""

    def __init__(self) -> None:
        self.url: str | None = None

    async def redirect(self, url: str) -> None:
        self.url = url


# ---------------------------------------------------------------------------
# AnswerGenerator — random valid answers per block type
# ---------------------------------------------------------------------------

class AnswerGenerator:
    def __init__(self, rng: random.Random) -> None:
        self.rng = rng

    def answer(self, conv: ConversationSession, block: Block) -> Any:
        """Record a random answer for ``block`` and return what was recorded."""
        interactions = block.active_interactions
        if not block.has_response_action or not interactions:
            return None

        block_type = BlockType(block.type)

        if block.is_multi_select:
            k = self.rng.randint(1, len(interactions))
            picked = self.rng.sample(interactions, k)
            for i in picked:
                conv.record_multi_answer(i.id, i.label or i.id)
            return [i.id for i in picked]

        if block_type == BlockType.RADIO:
            choice = self.rng.choice(interactions)
            conv.record_scalar_answer(choice.id, choice.label or choice.id)
            return choice.id

        target = interactions[0]
        if block_type == BlockType.FILE:
            value: Any = self._files()
        elif block_type in (BlockType.RATING, BlockType.SCALE):
            value = self.rng.randint(block.options.get("min", 1), block.options.get("max", 5))
        elif block_type == BlockType.NUMBER:
            value = self.rng.randint(0, 100)
        elif block_type == BlockType.CONSENT:
            value = self.rng.choice([True, False])
        elif block_type == BlockType.EMAIL:
            value = f"respondent{self.rng.randint(1, 999)}@example.com"
        elif block_type == BlockType.DATE:
            value = f"2026-{self.rng.randint(1, 12):02d}-{self.rng.randint(1, 28):02d}"
        else:
            value = self.rng.choice(_TEXT_POOL)

        conv.record_scalar_answer(target.id, value)
        if isinstance(value, list):
            return ", ".join(f.name for f in value)
        return value

    def _files(self) -> list[FileHandle]:
        picked = self.rng.sample(_FILE_TYPES, self.rng.randint(1, 2))
        return [
            FileHandle(
                name=name,
                content=self.rng.randbytes(self.rng.randint(1_000, 200_000)),
                content_type=content_type,
            )
            for name, content_type in picked
        ]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

async def run_one(
    api: HttpFormApi,
    form_id: str,
    run: int,
    answers: AnswerGenerator,
    console: Console,
    *,
    verbose: bool = False,
    max_steps: int = 200,
) -> RunResult:
    """Drive one conversation from init to submission."""
    result = RunResult(form_id=form_id, run=run)
    navigator = RecordingNavigator()
    conv = ConversationSession(api, navigator)

    try:
        await conv.init_form(form_id, {"utm_source": "simulation"})

        finished = False
        while not finished:
            if result.steps >= max_steps:
                raise RuntimeError(f"Exceeded {max_steps} steps, possible goto loop")

            block = conv.current_block
            if block is None:
                raise RuntimeError("Conversation has no block to render")

            given = answers.answer(conv, block)
            if given is not None:
                result.answered += 1
            if verbose:
                label = block.message or block.title or block.id
                console.print(f"    [dim]Q:[/] {label} ({block.id}) [{block.type}]")
                if given is not None:
                    console.print(f"    [dim]A:[/] {given}")

            finished = await conv.next()
            result.steps += 1
    except (FormflowError, RuntimeError, httpx.HTTPError) as exc:
        result.status = "failed"
        result.error = f"{type(exc).__name__}: {exc}"
        return result

    result.redirect_url = navigator.url
    result.status = "redirected" if navigator.url else "submitted"
    return result


def print_summary(console: Console, results: list[RunResult]) -> None:
    table = Table(title="Simulation results")
    table.add_column("Form")
    table.add_column("Run", justify="right")
    table.add_column("Status")
    table.add_column("Steps", justify="right")
    table.add_column("Answered", justify="right")
    table.add_column("Detail")

    colors = {"submitted": "green", "redirected": "cyan", "failed": "red"}
    for r in results:
        color = colors.get(r.status, "yellow")
        table.add_row(
            r.form_id,
            str(r.run),
            f"[{color}]{r.status.upper()}[/]",
            str(r.steps),
            str(r.answered),
            r.error or r.redirect_url or "",
        )
    console.print(table)

    failed = sum(1 for r in results if r.status == "failed")
    console.print(f"[bold]{len(results) - failed}/{len(results)} conversations completed[/]")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Simulate respondents filling in forms end-to-end.",
    )
    parser.add_argument(
        "-f", "--form",
        help="Comma-separated form ids to simulate (default: every bundled form)",
    )
    parser.add_argument(
        "-n", "--runs",
        type=int, default=3,
        help="Runs per form (default: 3)",
    )
    parser.add_argument(
        "--seed",
        type=int, default=None,
        help="RNG seed for reproducible answers (default: current time)",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Drive a live server at this URL instead of an in-process one",
    )
    parser.add_argument(
        "--forms-dir",
        default=None,
        help="Forms directory for the in-process server (default: forms/)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print every question and the answer given",
    )
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    console = Console()
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s [%(name)s] %(message)s")

    seed = args.seed if args.seed is not None else int(time.time())
    rng = random.Random(seed)
    console.print(f"[dim]RNG seed: {seed}[/]")

    if args.base_url:
        settings = ClientSettings(base_url=args.base_url.rstrip("/"))
        transport = None
        form_ids = [f.strip() for f in (args.form or "").split(",") if f.strip()]
        if not form_ids:
            console.print("[red]--form is required with --base-url[/]")
            sys.exit(1)
    else:
        from formflow_server.app import create_app
        from formflow_server.config import ServerSettings

        store = StoryboardStore(forms_dir=args.forms_dir)
        store.load()
        settings = ClientSettings(base_url=_IN_PROCESS_URL)
        transport = httpx.ASGITransport(
            app=create_app(ServerSettings(log_level="WARNING"), store=store),
        )
        form_ids = (
            [f.strip() for f in args.form.split(",") if f.strip()]
            if args.form else sorted(store.forms)
        )

    answers = AnswerGenerator(rng)
    results: list[RunResult] = []

    async with HttpFormApi(settings, transport=transport) as api:
        if not await api.health_check():
            console.print(f"[red]Server at {settings.base_url} is not reachable.[/]")
            sys.exit(1)

        for form_id in form_ids:
            for run in range(1, args.runs + 1):
                console.print(f"\n[bold cyan]{form_id}[/] (run {run}/{args.runs})")
                result = await run_one(
                    api, form_id, run, answers, console, verbose=args.verbose,
                )
                results.append(result)

    print_summary(console, results)

    if any(r.status == "failed" for r in results):
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
