"""
Main CLI entry point for stagekey.

Provides the command-line interface using Click:

    stagekey keys -m myapp.config              # list declared keys
    stagekey configure -m myapp.config -- --port=9090 -o key_gen.py
"""

import importlib as _importlib
import json as _json
import logging as _logging
import os as _os
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import click as _click

import stagekey
import stagekey.config as config
import stagekey.emitter as emitter
import stagekey.errors as errors
import stagekey.keys as keys
import stagekey.resolution as resolution
import stagekey.resolver as resolver

_logger = _logging.getLogger(__name__)

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

_STAGES = {stage.value: stage for stage in keys.Stage}


def _configure_logging(level: str) -> None:
    _logging.basicConfig(
        level=level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
        stream=_sys.stderr,
    )
    _logging.getLogger("stagekey").setLevel(level.upper())


def _import_modules(modules: _typing.Sequence[str]) -> None:
    """Import the modules declaring keys; keys register themselves on import."""
    cwd = _os.getcwd()
    if cwd not in _sys.path:
        _sys.path.insert(0, cwd)
    for name in modules:
        try:
            _importlib.import_module(name)
        except ImportError as e:
            _click.echo(f"Error: cannot import {name}: {e}", err=True)
            raise SystemExit(1) from None
        _logger.debug("Imported %s", name)


def _print_python(source: str, *, color: bool) -> None:
    """Print generated Python, optionally with syntax highlighting."""
    if color:
        import rich.console as _rich_console
        import rich.syntax as _rich_syntax

        console = _rich_console.Console(force_terminal=True)
        console.print(_rich_syntax.Syntax(source, "python", theme="monokai", background_color="default"))
        return
    _click.echo(source, nl=False)


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(stagekey.__version__, "-v", "--version", prog_name="stagekey")
@_click.option(
    "--log-level",
    type=_click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Log level (default: STAGEKEY_LOG_LEVEL or warning)",
)
@_click.pass_context
def cli(ctx: _click.Context, log_level: str | None) -> None:
    """
    stagekey - staged configuration keys.

    \b
    Examples:
        stagekey keys -m myapp.config
        stagekey configure -m myapp.config -o key_gen.py -- --port=9090
    """
    settings = config.Settings()
    if log_level:
        settings.log_level = log_level  # type: ignore[assignment]
    _configure_logging(settings.log_level)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command(name="keys")
@_click.option("-m", "--module", "modules", multiple=True, required=True, help="Module declaring keys")
@_click.option(
    "--stage",
    type=_click.Choice(sorted(_STAGES)),
    default="both",
    help="Only keys settable at this stage",
)
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
def keys_cmd(modules: tuple[str, ...], stage: str, json_output: bool) -> None:
    """List the keys declared by MODULE."""
    _import_modules(modules)
    selected = keys.filter_stage(_STAGES[stage], keys.get_default_registry().list_keys())
    listed = sorted(selected, key=lambda k: k.name)

    if json_output:
        _click.echo(_json.dumps([k.to_dict() for k in listed], indent=2))
        return

    import rich.console as _rich_console
    import rich.table as _rich_table

    table = _rich_table.Table(title=f"Keys ({len(listed)})")
    table.add_column("Name")
    table.add_column("Stage")
    table.add_column("Default")
    table.add_column("Env")
    table.add_column("Doc")
    for k in listed:
        table.add_row(
            k.name,
            k.stage.value,
            k.converter.serialize(k.default),
            k.info.env or "",
            k.doc,
        )
    _rich_console.Console().print(table)


@cli.command(
    name="configure",
    context_settings={"ignore_unknown_options": True},
)
@_click.option("-m", "--module", "modules", multiple=True, required=True, help="Module declaring keys")
@_click.option(
    "-o",
    "--output",
    type=_click.Path(dir_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Write the generated module here instead of stdout",
)
@_click.option(
    "--load",
    "load_path",
    type=_click.Path(exists=True, dir_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Start from a saved configuration",
)
@_click.option(
    "--save",
    "save_path",
    type=_click.Path(dir_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Save the explicit configuration for later --load",
)
@_click.option("--color", is_flag=True, help="Syntax-highlight the generated module")
@_click.argument("args", nargs=-1, type=_click.UNPROCESSED)
@_click.pass_context
def configure_cmd(
    ctx: _click.Context,
    modules: tuple[str, ...],
    output: _pathlib.Path | None,
    load_path: _pathlib.Path | None,
    save_path: _pathlib.Path | None,
    color: bool,
    args: tuple[str, ...],
) -> None:
    """
    Resolve configure-time keys from ARGS and generate the key module.

    Options after `--` are parsed against the keys declared by MODULE.
    """
    settings: config.Settings = ctx.obj["settings"]
    _import_modules(modules)
    all_keys = keys.get_default_registry().list_keys()

    try:
        resolved = resolution.EMPTY
        if load_path is not None:
            resolved = resolution.load_map(load_path.read_text(encoding="utf-8"), all_keys)
        term = resolver.term(
            all_keys,
            stage=keys.Stage.CONFIGURE,
            allow_unknown=settings.allow_unknown,
            env_prefix=settings.env_prefix,
        )
        resolved = term.resolve(args, loaded=resolved)
        source = emitter.render_module(
            resolved,
            all_keys,
            module_name=settings.module_name,
            runtime_module=settings.runtime_module,
        )
    except errors.StagekeyError as e:
        _click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from None

    if save_path is not None:
        configure_keys = keys.filter_stage(keys.Stage.CONFIGURE, all_keys)
        save_path.write_text(resolution.dump_map(resolved, configure_keys), encoding="utf-8")
        _logger.info("Saved configuration to %s", save_path)

    if output is not None:
        output.write_text(source, encoding="utf-8")
        _click.echo(f"Wrote {output}", err=True)
    else:
        _print_python(source, color=color)


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="stagekey")


if __name__ == "__main__":
    main()
