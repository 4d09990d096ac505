"""CLI handler for running research."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from deepresearch.commands._helpers import ProgressPrinter, get_context
from deepresearch.models.session import ResearchPhase


def _run(coro):
    return asyncio.run(coro)


@click.command("run")
@click.argument("query")
@click.option("--breadth", "-b", type=int, default=None, help="Sub-queries per node")
@click.option("--depth", "-d", type=int, default=None, help="Maximum recursion depth")
@click.option("--language", "-l", default=None, help="Output language code (e.g. en, zh)")
@click.option("--search-language", default=None, help="Language for search queries")
@click.option("--concurrency", "-c", type=int, default=None, help="Max concurrent backend calls")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write report to file")
@click.option("--no-history", is_flag=True, help="Do not save the session to history")
@click.pass_obj
def research_command(
    obj: dict,
    query: str,
    breadth: int | None,
    depth: int | None,
    language: str | None,
    search_language: str | None,
    concurrency: int | None,
    output: Path | None,
    no_history: bool,
):
    """Research QUERY and print the final report."""

    async def _research():
        ctx = await get_context(obj.get("config_path"), require_db=False, connect=not no_history)
        try:
            try:
                config = ctx.config.research.to_research_config(
                    breadth=breadth,
                    max_depth=depth,
                    language=language,
                    search_language=search_language,
                    concurrency_limit=concurrency,
                )
                engine = ctx.research_engine
            except (ValueError, RuntimeError) as e:
                raise click.ClickException(str(e)) from e

            service = ctx.session_service
            service.add_listener(ProgressPrinter())

            click.echo(f"Query: {query}")
            click.echo(f"  Breadth: {config.breadth}, Depth: {config.max_depth}, "
                       f"Concurrency: {config.concurrency_limit}")

            await service.start(query, engine, config)
            try:
                await service.wait()
            finally:
                await service.cancel()

            session = service.current_session
            if session is None or session.state.phase != ResearchPhase.COMPLETE:
                message = session.state.message if session else "no session"
                click.echo(f"Research failed: {message}", err=True)
                raise SystemExit(1)

            if not session.report:
                click.echo("No learnings were found; no report generated.", err=True)
                return

            click.echo("\n=== Report ===\n")
            click.echo(session.report)
            if output:
                output.write_text(session.report, encoding="utf-8")
                click.echo(f"\nReport saved to: {output}", err=True)
        finally:
            await ctx.close()

    _run(_research())
