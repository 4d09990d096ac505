"""CLI handlers for config commands."""

from __future__ import annotations

from pathlib import Path

import click

from deepresearch.config import DEFAULT_CONFIG_PATH, init_config, load_config


@click.group("config")
def config_group():
    """Manage configuration."""
    pass


def _path(obj: dict | None) -> Path:
    return (obj or {}).get("config_path") or DEFAULT_CONFIG_PATH


@config_group.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_obj
def config_init(obj, force: bool):
    """Create default configuration file."""
    path = _path(obj)
    if path.exists() and not force:
        click.echo(f"Config already exists at {path} (use --force to overwrite)", err=True)
        return
    init_config(path)
    click.echo(f"Configuration created at: {path}")


@config_group.command("show")
@click.pass_obj
def config_show(obj):
    """Show current configuration."""
    config = load_config(_path(obj))
    research = config.research
    click.echo(f"Config file: {config.config_path}")
    click.echo(f"  MongoDB: {config.mongodb.uri}/{config.mongodb.database}")
    click.echo(f"  Research: provider={research.provider}, model={research.model or '(default)'}, "
               f"search={research.search}")
    click.echo(f"  Tree: breadth={research.breadth}, max_depth={research.max_depth}, "
               f"concurrency={research.concurrency_limit}, results={research.max_search_results}")
    click.echo(f"  Language: {research.language}, search language: {research.search_language or '(same)'}")
    click.echo(f"  Call timeout: {research.call_timeout or 'none'}")
    click.echo(f"  History: {'enabled' if config.history.enabled else 'disabled'} "
               f"(recent_limit={config.history.recent_limit})")

    click.echo("\n  Providers:")
    for name, prov in config.providers.items():
        has_key = "configured" if prov.api_key else "not set"
        click.echo(f"    {name}: model={prov.default_model}, key={has_key}")

    click.echo("\n  Search:")
    for name, search in config.search.items():
        has_key = "configured" if search.api_key else "not set"
        click.echo(f"    {name}: key={has_key}")


def _coerce(value: str):
    import json

    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.isdigit():
        return int(value)
    if value.startswith("[") or value.startswith("{"):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    try:
        return float(value)
    except ValueError:
        return value


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def config_set(obj, key: str, value: str):
    """Set a configuration value.

    Modifies the TOML config file. Key uses dot notation, e.g.:
    research.breadth, research.search, mongodb.uri, history.enabled
    """
    import tomli_w

    path = _path(obj)
    if not path.exists():
        click.echo("No config file found. Run 'deepresearch config init' first.", err=True)
        return

    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    with open(path, "rb") as f:
        data = tomllib.load(f)

    # Navigate dot-separated key
    parts = key.split(".")
    target = data
    for part in parts[:-1]:
        target = target.setdefault(part, {})

    target[parts[-1]] = _coerce(value)

    with open(path, "wb") as f:
        tomli_w.dump(data, f)

    click.echo(f"Set {key} = {value}")
