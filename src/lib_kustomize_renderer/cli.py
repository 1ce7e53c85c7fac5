"""CLI adapter for ``lib_kustomize_renderer`` built on ``lib_cli_exit_tools``.

Purpose
-------
Let operators render kustomization directories from a shell, with the same
values injection, load restrictions, source annotations, and warning policy
the library offers, and print the result as YAML or JSON.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root command wiring traceback handling into
  ``lib_cli_exit_tools``.
* :func:`cli_info` – prints distribution metadata.
* :func:`cli_render` – renders one or more paths.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
Outermost layer: builds :class:`RendererOptions` from flags and calls
:func:`lib_kustomize_renderer.core.render`. ``lib_cli_exit_tools`` maps raised
:class:`RenderError` instances to exit codes and summary messages.
"""

from __future__ import annotations

import json
import sys
from importlib import metadata
from typing import Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click
import yaml

from .application.options import RendererOptions
from .application.warning_handlers import WarningPolicy, handler_for
from .core import render
from .domain.document import Document
from .domain.source import LoadRestrictions, Source

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000
_DIST_NAME: Final[str] = "lib_kustomize_renderer"

FORMAT_CHOICES: Final[tuple[str, ...]] = ("yaml", "json")
RESTRICTION_CHOICES: Final[tuple[str, ...]] = ("root-only", "none")


def _resolve_version() -> str:
    """Return the installed package version, or ``"0.0.0"`` for source checkouts."""

    try:
        return metadata.version(_DIST_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Render kustomization directories into Kubernetes manifests",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name=_DIST_NAME,
    message=f"{_DIST_NAME} version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command storing the traceback preference for every subcommand.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print distribution metadata so users can confirm the installation."""

    try:
        meta = metadata.metadata(_DIST_NAME)
    except metadata.PackageNotFoundError:
        click.echo(f"{_DIST_NAME} (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', _DIST_NAME)}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.10')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")


@cli.command("render", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("paths", nargs=-1, required=True)
@click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="KEY=VALUE",
    help="Value injected into every source as values.yaml (repeatable)",
)
@click.option(
    "--load-restrictions",
    type=click.Choice(RESTRICTION_CHOICES, case_sensitive=False),
    default="root-only",
    show_default=True,
    help="Which files the build may load",
)
@click.option(
    "--source-annotations/--no-source-annotations",
    default=False,
    show_default=True,
    help="Annotate each document with the renderer, source path, and source file",
)
@click.option(
    "--warnings",
    "warning_policy",
    type=click.Choice([policy.value for policy in WarningPolicy], case_sensitive=False),
    default=WarningPolicy.LOG.value,
    show_default=True,
    help="How to treat deprecated kustomization fields",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    default="yaml",
    show_default=True,
    help="Output encoding",
)
def cli_render(
    paths: Sequence[str],
    assignments: Sequence[str],
    load_restrictions: str,
    source_annotations: bool,
    warning_policy: str,
    output_format: str,
) -> None:
    """Render every PATH in order and print the aggregated documents.

    Examples
    --------
    >>> from click.testing import CliRunner
    >>> result = CliRunner().invoke(cli, ["render", "--set", "broken"])
    >>> result.exit_code
    2
    """

    values = _parse_assignments(assignments)
    options = RendererOptions(
        source_annotations=source_annotations,
        load_restrictions=LoadRestrictions.parse(load_restrictions),
        warning_handler=handler_for(warning_policy.lower()),
    )
    documents = render([Source(path, values) for path in paths], options)
    click.echo(_format_documents(documents, output_format.lower()), nl=False)


def _parse_assignments(assignments: Sequence[str]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` flags into a mapping; later flags win."""

    values: dict[str, str] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--set")
        values[key.strip()] = value
    return values


def _format_documents(documents: Sequence[Document], output_format: str) -> str:
    payload = [doc.as_dict() for doc in documents]
    if output_format == "json":
        return json.dumps(payload, indent=2) + "\n"
    if not payload:
        return ""
    return yaml.safe_dump_all(payload, sort_keys=False, explicit_start=True)


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name=_DIST_NAME,
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
