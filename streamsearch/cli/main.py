"""streamsearch command-line interface."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sys

import click

from streamsearch.config import StreamSearchConfig
from streamsearch.errors import TransportError


@click.group()
@click.version_option(package_name="streamsearch")
def app() -> None:
    """streamsearch CLI - conversational catalog search over a streamed connection."""


@app.command()
@click.argument("query")
@click.option(
    "--follow-up",
    "-f",
    "follow_ups",
    multiple=True,
    help="Follow-up question sent with the session id of the previous turn. Repeatable.",
)
@click.option(
    "--base-url",
    envvar="STREAMSEARCH_BASE_URL",
    default=None,
    help="Search backend base URL.",
)
@click.option(
    "--token",
    envvar="STREAMSEARCH_TOKEN",
    default=None,
    help="Bearer token sent with the stream request.",
)
@click.option(
    "--reveal-delay",
    type=float,
    default=None,
    help="Seconds to wait after a turn completes before showing its first product.",
)
@click.option(
    "--reveal-stagger",
    type=float,
    default=None,
    help="Seconds between consecutive products.",
)
@click.option(
    "--hide-thinking",
    is_flag=True,
    help="Do not print the reasoning text streamed before the answer.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Log connection and chunk activity to stderr.",
)
def ask(
    query: str,
    follow_ups: tuple[str, ...],
    base_url: str | None,
    token: str | None,
    reveal_delay: float | None,
    reveal_stagger: float | None,
    hide_thinking: bool,
    verbose: bool,
) -> None:
    """Ask QUERY in AI search mode and print the streamed answer and products."""
    from .ask import run_ask

    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, stream=sys.stderr)
    try:
        config = StreamSearchConfig.from_env()
        overrides: dict[str, object] = {}
        if base_url:
            overrides["base_url"] = base_url
        if reveal_delay is not None:
            overrides["reveal_initial_delay_s"] = reveal_delay
        if reveal_stagger is not None:
            overrides["reveal_stagger_s"] = reveal_stagger
        if overrides:
            config = dataclasses.replace(config, **overrides)
    except ValueError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(2)

    try:
        result = asyncio.run(
            run_ask(config, [query, *follow_ups], token=token, show_thinking=not hide_thinking)
        )
    except TransportError as e:
        click.echo(f"✗ {e.message}", err=True)
        click.echo("  Hint: check the backend URL and token, then ask again.", err=True)
        sys.exit(1)
    if result.session_id:
        click.echo(f"session: {result.session_id}", err=True)


if __name__ == "__main__":  # pragma: no cover
    app()
