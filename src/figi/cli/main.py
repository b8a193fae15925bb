"""
Main CLI entry point for Figi.

Builds a Config from command-line options (search paths, env prefix,
overrides) and prints what an application would see:

    figi show --path ./config --name app
    figi get database.port --path ./config --name app
"""

import functools as _functools
import json as _json
import logging as _logging
import os as _os
import sys as _sys
import typing as _typing

import click as _click
import rich.console as _rich_console
import rich.syntax as _rich_syntax
import yaml as _yaml

import figi
import figi.config as config
import figi.env as env
import figi.errors as errors
import figi.tree as tree

CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

_F = _typing.TypeVar("_F", bound=_typing.Callable[..., _typing.Any])


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(figi.__version__, "-v", "--version", prog_name="figi")
@_click.option("--verbose", is_flag=True, help="Log loading details to stderr")
def cli(verbose: bool) -> None:
    """Figi - inspect layered configuration."""
    if verbose:
        _logging.basicConfig(level=_logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _source_options(func: _F) -> _F:
    """Options shared by every command that builds a Config."""
    options = [
        _click.option("--name", "config_name", default=config.DEFAULT_CONFIG_NAME,
                      show_default=True, help="Config file base name (no extension)"),
        _click.option("--path", "config_paths", multiple=True,
                      type=_click.Path(file_okay=False), help="Search directory (repeatable)"),
        _click.option("--file", "config_file", default=None, type=_click.Path(dir_okay=False),
                      help="Load this file instead of searching"),
        _click.option("--prefix", default=env.DEFAULT_PREFIX, show_default=True,
                      help="Env var prefix for auto-binding"),
        _click.option("--separator", default=env.DEFAULT_SEPARATOR, show_default=True,
                      help="Env var segment separator"),
        _click.option("--no-env", is_flag=True, help="Ignore environment variables"),
        _click.option("--set", "overrides", multiple=True, metavar="KEY=VALUE",
                      help="Runtime override (repeatable)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _parse_overrides(pairs: _typing.Iterable[str]) -> dict[str, _typing.Any]:
    result: dict[str, _typing.Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise _click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--set")
        tree.assign(result, tree.split_key(key.strip()), env.coerce_scalar(value))
    return result


def _build_config(
    *,
    config_name: str,
    config_paths: tuple[str, ...],
    config_file: str | None,
    prefix: str,
    separator: str,
    no_env: bool,
    overrides: tuple[str, ...],
) -> config.Config:
    cfg = config.Config(notifier_factory=None)
    try:
        cfg.set_config_name(config_name)
        for path in config_paths:
            cfg.add_config_path(path)
        if config_file:
            cfg.set_config_file(config_file)
        cfg.configure_env(prefix=prefix or None, separator=separator)
        cfg.load(
            _parse_overrides(overrides),
            read_files=bool(config_paths or config_file),
            read_env=not no_env,
            read_remote=False,
        )
    except errors.ConfigError as e:
        raise _click.ClickException(str(e)) from e
    return cfg


def _with_config(func: _F) -> _F:
    """Turn the shared source options into a `cfg` argument."""

    @_functools.wraps(func)
    def wrapper(**kwargs: _typing.Any) -> _typing.Any:
        source_kwargs = {
            name: kwargs.pop(name)
            for name in (
                "config_name", "config_paths", "config_file",
                "prefix", "separator", "no_env", "overrides",
            )
        }
        return func(cfg=_build_config(**source_kwargs), **kwargs)

    return _typing.cast(_F, _source_options(wrapper))


@cli.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--section", type=str, default=None, help="Show one key (dotted) only")
@_click.option(
    "--color/--no-color",
    "use_color",
    default=None,
    help="Enable/disable syntax highlighting (default: auto-detect TTY)",
)
@_with_config
def show(cfg: config.Config, as_json: bool, section: str | None, use_color: bool | None) -> None:
    """Show the merged configuration.

    Examples:
        figi show --path ./config --name app
        figi show --path ./config --section database --json
        FIGI_DATABASE_PORT=5433 figi show --path ./config
    """
    data: _typing.Any = cfg.to_dict()
    if section:
        value = cfg.get(section, tree.MISSING)
        if value is tree.MISSING:
            raise _click.ClickException(f"Unknown section: {section}")
        data = {section: tree.thaw(value)}

    if as_json:
        _click.echo(_json.dumps(data, indent=2))
        return

    color_enabled, force_color = _should_use_color(use_color)
    yaml_text = _yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    _print_yaml(yaml_text, color=color_enabled, force_color=force_color)


@cli.command(name="get")
@_click.argument("key")
@_with_config
def get(cfg: config.Config, key: str) -> None:
    """Print the value of one key (containers as JSON)."""
    value = cfg.get(key, tree.MISSING)
    if value is tree.MISSING:
        raise _click.ClickException(f"Key not found: {key}")
    value = tree.thaw(value)
    if isinstance(value, (dict, list)) or value is None or isinstance(value, bool):
        _click.echo(_json.dumps(value))
    else:
        _click.echo(str(value))


def _should_use_color(cli_flag: bool | None) -> tuple[bool, bool]:
    """Determine whether to use color output.

    Priority:
    1. CLI flag (--color / --no-color) if specified
    2. NO_COLOR env var (if set, disable color)
    3. Auto-detect: color if stdout is a TTY

    No FIGI_* variable is consulted here: it would be auto-bound into
    the very config being shown.

    Returns:
        Tuple of (color_enabled, force_color).
    """
    if cli_flag is not None:
        return (cli_flag, cli_flag)

    if _os.environ.get("NO_COLOR") is not None:
        return (False, False)

    return (_sys.stdout.isatty(), False)


def _print_yaml(yaml_text: str, *, color: bool = True, force_color: bool = False) -> None:
    """Print YAML text, optionally with syntax highlighting."""
    if not color:
        _click.echo(yaml_text, nl=False)
        return
    console = _rich_console.Console(
        force_terminal=force_color,
        no_color=False if force_color else None,
        color_system="truecolor" if force_color else "auto",
    )
    console.print(
        _rich_syntax.Syntax(yaml_text, "yaml", theme="monokai", background_color="default")
    )


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="figi")


if __name__ == "__main__":
    main()
