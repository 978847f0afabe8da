"""Run a streamed search conversation from the terminal."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

import click

from streamsearch.broker import SessionEvent, SessionEventType
from streamsearch.config import StreamSearchConfig
from streamsearch.session import StreamSession
from streamsearch.transport import HttpStreamTransport, StreamTransport
from streamsearch.types import AssistantTurn, ProductAttachment


@dataclass(slots=True)
class AskResult:
    turns: list[AssistantTurn] = field(default_factory=list)
    session_id: str | None = None


def build_transport(config: StreamSearchConfig, token: str | None) -> StreamTransport:
    credentials = None
    if token:

        async def credentials() -> str | None:
            return token

    return HttpStreamTransport(credentials=credentials, timeout_s=config.timeout_s)


def _format_price(value: int | float) -> str:
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.2f}đ"
    return f"{int(value):,}".replace(",", ".") + "đ"


def format_product(index: int, product: ProductAttachment) -> str:
    prices = ", ".join(f"{size} {_format_price(price)}" for size, price in product.size_price_table.entries())
    parts = [f"[{index + 1}] {product.name}"]
    if product.category:
        parts.append(product.category)
    parts.append(prices)
    if product.discount_percent:
        parts.append(f"-{product.discount_percent:g}%")
    if product.rating is not None:
        parts.append(f"★ {product.rating:.1f}")
    return " | ".join(parts)


async def _print_reveals(queue: asyncio.Queue[SessionEvent], turn: AssistantTurn) -> None:
    revealed = 0
    while revealed < len(turn.products):
        event = await queue.get()
        index = event.content["index"]
        click.echo(format_product(index, turn.products[index]))
        revealed += 1


async def run_ask(
    config: StreamSearchConfig,
    queries: Sequence[str],
    *,
    token: str | None = None,
    show_thinking: bool = True,
) -> AskResult:
    """Ask ``queries[0]`` and each follow-up in order, printing every finished turn."""
    result = AskResult()
    transport = build_transport(config, token)
    async with StreamSession(transport, config=config) as session:
        # Subscribed up front so no reveal event fires before we listen.
        reveals, unsubscribe = await session.subscribe(event_types=[SessionEventType.REVEAL])
        try:
            for position, query in enumerate(queries):
                click.echo(f"> {query}")
                if position == 0:
                    await session.start(query)
                else:
                    await session.start_follow_up(query)
                turn = await session.wait_turn()
                if turn is None:
                    break
                if show_thinking and turn.thinking_text:
                    click.echo(click.style(turn.thinking_text, dim=True))
                click.echo(turn.answer_text)
                await _print_reveals(reveals, turn)
                result.turns.append(turn)
            result.session_id = session.session_id
        finally:
            await unsubscribe()
    return result


__all__ = ["AskResult", "build_transport", "format_product", "run_ask"]
