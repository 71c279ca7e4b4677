"""Commands for recording into and inspecting a memory session."""

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Annotated, Any, cast

import typer

from northstar.cli.commands._helpers import get_config, open_session
from northstar.cli.console import (
    confirm_or_cancel,
    console,
    create_table,
    dim,
    error,
    plain,
    success,
)
from northstar.errors import StorageError
from northstar.memory.types import Role

DEFAULT_RETRIEVE_BUDGET = 500

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration file",
    ),
]


def register(app: typer.Typer) -> None:
    """Register session commands."""

    @app.command()
    def record(
        role: Annotated[str, typer.Argument(help="Message role: user or assistant")],
        text: Annotated[str, typer.Argument(help="Message content")],
        config: ConfigOption = None,
    ) -> None:
        """Record one conversation message."""
        if role not in ("user", "assistant"):
            error(f"Invalid role '{role}'. Use 'user' or 'assistant'.")
            raise typer.Exit(1)
        cfg = get_config(config)

        async def run() -> None:
            async with open_session(cfg) as session:
                before = session.graph.node_count
                message = await session.record_message(cast(Role, role), text)
                await session.save()
                extracted = session.graph.node_count - before
            success(f"Recorded {role} message {message.id}")
            dim(f"{extracted} entities extracted")

        _run(run())

    @app.command()
    def retrieve(
        query: Annotated[str, typer.Argument(help="What to retrieve context for")],
        budget: Annotated[
            int,
            typer.Option("--budget", "-b", help="Token budget for the result"),
        ] = DEFAULT_RETRIEVE_BUDGET,
        config: ConfigOption = None,
    ) -> None:
        """Print hybrid (graph + vector) retrieval for a query."""
        cfg = get_config(config)

        async def run() -> None:
            async with open_session(cfg) as session:
                result = await session.retriever.retrieve(query, budget)
            if not result:
                dim("No relevant context")
                return
            plain(result)

        _run(run())

    @app.command()
    def handoff(
        provider: Annotated[str, typer.Argument(help="Target provider, e.g. claude")],
        switch: Annotated[
            bool,
            typer.Option("--switch", help="Also make this the current provider"),
        ] = False,
        config: ConfigOption = None,
    ) -> None:
        """Print the context handoff a provider would receive."""
        cfg = get_config(config)

        async def run() -> None:
            async with open_session(cfg) as session:
                if switch:
                    result = await session.switch_provider(provider)
                    await session.save()
                    if result is None:
                        dim(f"Already using {provider}")
                        return
                else:
                    result = await session.build_handoff(provider)
            plain(result.context)
            dim(f"\n{result.token_count} tokens for {result.provider}")

        _run(run())

    @app.command()
    def stats(config: ConfigOption = None) -> None:
        """Show graph, vector and message counts."""
        cfg = get_config(config)

        async def run() -> None:
            async with open_session(cfg) as session:
                counts = session.stats()

            table = create_table(
                "Session Graph", [("Node Type", "cyan"), ("Count", "magenta")]
            )
            for node_type, count in counts["nodes"].items():
                table.add_row(node_type, str(count))
            console.print(table)
            console.print(f"Edges: {counts['edges']}")
            console.print(f"Vectors: {counts['vectors']}")
            console.print(f"Messages: {counts['messages']}")
            console.print(f"Provider: {counts['provider']}")

        _run(run())

    @app.command()
    def clear(
        force: Annotated[
            bool,
            typer.Option("--force", "-f", help="Skip confirmation"),
        ] = False,
        config: ConfigOption = None,
    ) -> None:
        """Delete all session memory."""
        cfg = get_config(config)
        if not confirm_or_cancel("Clear all session memory?", force):
            return

        async def run() -> None:
            async with open_session(cfg) as session:
                await session.clear()
            success("Session cleared")

        _run(run())


def _run(coro: Coroutine[Any, Any, None]) -> None:
    try:
        asyncio.run(coro)
    except StorageError as e:
        error(str(e))
        raise typer.Exit(1) from None
