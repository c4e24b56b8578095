"""CLI commands for previewing and applying unified diffs."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer

from .config import DEFAULT_CONFIG_NAME, PatchPilotSettings, copy_config_template, load_settings, write_config
from .errors import ConfigError, PatchError
from .models import ApplyOptions, ApplyResult, FileInfo
from .orchestrator import ParsedDiff, PatchApplier, Stager
from .patch.normalizer import normalize_diff
from .vcs import GitError, GitRepository
from .workspace import LocalWorkspace

APP_HELP = "Apply AI-generated unified diffs to a workspace."

app = typer.Typer(help=APP_HELP)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _read_patch(source: str) -> str:
    """Read diff text from ``source``; ``-`` means standard input."""
    if source == "-":
        return sys.stdin.read()
    path = Path(source)
    if not path.exists():
        raise typer.BadParameter(f"Patch file not found: {path}")
    return path.read_text(encoding="utf-8")


def _load_settings(config: str) -> PatchPilotSettings:
    try:
        return load_settings(Path(config))
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def _build_stager(root: Path) -> Stager | None:
    try:
        repo = GitRepository.discover(root)
    except GitError as error:
        typer.echo(f"Warning: auto-stage disabled: {error}")
        return None
    return repo.stage


def _parse(applier: PatchApplier, text: str, fallback_path: Optional[str]) -> ParsedDiff:
    try:
        return applier.parse(text, fallback_path=fallback_path)
    except PatchError as error:
        typer.echo(f"Invalid patch: {error}")
        raise typer.Exit(code=1) from error


def _render_corrections(parsed: ParsedDiff) -> None:
    if not parsed.corrections.corrections_made:
        return
    typer.echo("Corrected hunk headers:")
    for correction in parsed.corrections.corrections:
        typer.echo(f"  - {correction.render()}")


def _render_preview(infos: List[FileInfo]) -> None:
    for info in infos:
        if info.is_new_file and not info.exists:
            state = "new"
        else:
            state = "ok" if info.exists else "missing"
        flag = " (headers corrected)" if info.hunk_headers_corrected else ""
        typer.echo(
            f"{info.file_path}: {info.hunks} hunk(s), "
            f"+{info.changes.additions}/-{info.changes.deletions} [{state}]{flag}"
        )


def _render_results(results: List[ApplyResult]) -> None:
    for result in results:
        if result.applied:
            typer.echo(f"- {result.file}: applied ({result.strategy})")
        else:
            typer.echo(f"- {result.file}: failed :: {result.reason}")


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the configuration file to create.",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write a default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Configuration already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=1)
    write_config(config_path, copy_config_template())
    typer.echo(f"Wrote configuration to {config_path}.")


@app.command()
def normalize(
    patch: str = typer.Argument(..., help="Patch file to normalise, or '-' for stdin."),
    fallback_path: Optional[str] = typer.Option(
        None,
        "--fallback-path",
        help="Target file for hunks that carry no file headers.",
    ),
) -> None:
    """Print the repaired form of a diff."""
    try:
        typer.echo(normalize_diff(_read_patch(patch), fallback_path=fallback_path), nl=False)
    except PatchError as error:
        typer.echo(f"Invalid patch: {error}")
        raise typer.Exit(code=1) from error


@app.command()
def preview(
    patch: str = typer.Argument(..., help="Patch file to preview, or '-' for stdin."),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Workspace root the patch applies to."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help="Path to the configuration file."),
    fallback_path: Optional[str] = typer.Option(None, "--fallback-path", help="Target file for headerless hunks."),
    as_json: bool = typer.Option(False, "--json", help="Emit the preview as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show which files a diff touches without changing them."""
    _configure_logging(verbose)
    settings = _load_settings(config)
    applier = PatchApplier(LocalWorkspace(root, strict_file_search=settings.strict_file_search), settings=settings)
    parsed = _parse(applier, _read_patch(patch), fallback_path)
    infos = applier.preview(parsed.patches, corrections=parsed.corrections)

    if as_json:
        typer.echo(json.dumps([info.to_dict() for info in infos], indent=2))
    else:
        _render_corrections(parsed)
        _render_preview(infos)

    if not applier.can_apply(infos):
        typer.echo("No target files exist in the workspace; nothing can be applied.")
        raise typer.Exit(code=1)


@app.command()
def apply(
    patch: str = typer.Argument(..., help="Patch file to apply, or '-' for stdin."),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Workspace root the patch applies to."),
    config: str = typer.Option(DEFAULT_CONFIG_NAME, "--config", "-c", help="Path to the configuration file."),
    fuzz: Optional[int] = typer.Option(
        None,
        "--fuzz",
        min=0,
        max=3,
        help="Lines of drift tolerated when locating hunks (defaults to the configured fuzz_factor).",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Apply without confirmation prompts."),
    no_mtime_check: bool = typer.Option(
        False,
        "--no-mtime-check",
        help="Write even if a file changed on disk after it was read.",
    ),
    auto_stage: Optional[bool] = typer.Option(
        None,
        "--auto-stage/--no-auto-stage",
        help="Stage applied files with git (defaults to the configured auto_stage).",
    ),
    fallback_path: Optional[str] = typer.Option(None, "--fallback-path", help="Target file for headerless hunks."),
    as_json: bool = typer.Option(False, "--json", help="Emit results as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Apply a diff to the workspace."""
    _configure_logging(verbose)
    settings = _load_settings(config)
    options = ApplyOptions(
        preview=not yes,
        fuzz=fuzz,
        auto_stage=auto_stage,
        mtime_check=False if no_mtime_check else None,
        mtime_prompt=not yes,
    )
    resolved = options.resolve(settings)
    stager = _build_stager(root) if resolved.auto_stage else None
    applier = PatchApplier(
        LocalWorkspace(root, strict_file_search=settings.strict_file_search),
        settings=settings,
        prompt=lambda message: typer.confirm(message, default=True),
        stager=stager,
    )

    parsed = _parse(applier, _read_patch(patch), fallback_path)
    results = applier.apply(parsed.patches, options)

    if as_json:
        payload = {
            "corrections": [item.render() for item in parsed.corrections.corrections],
            "results": [result.to_dict() for result in results],
        }
        typer.echo(json.dumps(payload, indent=2))
    else:
        _render_corrections(parsed)
        _render_results(results)

    if any(not result.applied for result in results):
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
