"""CLI handlers for research history commands."""

from __future__ import annotations

import asyncio

import click

from deepresearch.commands._helpers import get_context


def _run(coro):
    return asyncio.run(coro)


@click.group("history")
def history_group():
    """Browse saved research sessions."""
    pass


def _echo_records(records) -> None:
    if not records:
        click.echo("No research history.")
        return
    for rec in records:
        when = rec.start_time.strftime("%Y-%m-%d %H:%M")
        click.echo(f"{rec.id}  {when}  [{rec.status}]  {rec.query[:80]}")


@history_group.command("list")
@click.option("--limit", "-n", default=20, help="Number of records to show")
@click.pass_obj
def history_list(obj, limit: int):
    """List recent research sessions."""

    async def _list():
        ctx = await get_context(obj.get("config_path"))
        try:
            _echo_records(await ctx.history_repo.list_recent(limit))
        finally:
            await ctx.close()

    _run(_list())


@history_group.command("search")
@click.argument("keyword")
@click.pass_obj
def history_search(obj, keyword: str):
    """Find sessions whose query or report mentions KEYWORD."""

    async def _search():
        ctx = await get_context(obj.get("config_path"))
        try:
            _echo_records(await ctx.history_repo.search(keyword))
        finally:
            await ctx.close()

    _run(_search())


@history_group.command("show")
@click.argument("history_id")
@click.option("--learnings", is_flag=True, help="Also list extracted learnings")
@click.pass_obj
def history_show(obj, history_id: str, learnings: bool):
    """Show a saved report."""

    async def _show():
        ctx = await get_context(obj.get("config_path"))
        try:
            record = await ctx.history_repo.find_by_id(history_id)
            if not record:
                click.echo(f"History record not found: {history_id}", err=True)
                return
            session = await ctx.session_service.load_from_history(record)
            click.echo(f"Query: {session.query}")
            click.echo(f"Started: {session.start_time:%Y-%m-%d %H:%M}")
            click.echo()
            click.echo(session.report)
            if learnings:
                click.echo(f"\n=== Learnings ({len(session.learnings)}) ===")
                for lr in session.learnings:
                    click.echo(f"  - {lr.learning[:150]} ({lr.url})")
        finally:
            await ctx.close()

    _run(_show())


@history_group.command("delete")
@click.argument("history_id")
@click.pass_obj
def history_delete(obj, history_id: str):
    """Delete one saved session."""

    async def _delete():
        ctx = await get_context(obj.get("config_path"))
        try:
            if await ctx.history_repo.delete(history_id):
                click.echo(f"Deleted: {history_id}")
            else:
                click.echo(f"History record not found: {history_id}", err=True)
        finally:
            await ctx.close()

    _run(_delete())


@history_group.command("clear")
@click.confirmation_option(prompt="Delete all research history?")
@click.pass_obj
def history_clear(obj):
    """Delete all saved sessions."""

    async def _clear():
        ctx = await get_context(obj.get("config_path"))
        try:
            deleted = await ctx.history_repo.delete_all()
            click.echo(f"Deleted {deleted} record(s).")
        finally:
            await ctx.close()

    _run(_clear())
