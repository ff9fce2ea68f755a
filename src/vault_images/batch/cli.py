"""CLI entry point for batch image processing."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from vault_images.core import config_templates
from vault_images.core import workspace as workspace_mod
from vault_images.core.config_templates import ConfigTemplateError
from vault_images.core.logging import configure_logger
from vault_images.core.workspace import WorkspaceError

from .config import (
    CONFIG_FILENAME,
    BatchConfigError,
    ConfigOverrides,
    ConversionSettings,
    load_config,
)
from .orchestrator import (
    BatchSummary,
    OutcomeStatus,
    process_folder,
    process_note,
    process_vault,
)
from .processor import PillowImageProcessor
from .progress import (
    ProgressReporter,
    RichStatusIndicator,
    immediate_scheduler,
)
from .scanner import ScanError
from .templating import FilenameTemplater, TemplateConfigError
from .vault import Vault, VaultError


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--vault",
        type=Path,
        help="Vault root directory (overrides [paths] vault).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help=(
            "Path to a TOML config file (defaults to the workspace config "
            "directory)."
        ),
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        help="Override the workspace root used for config and logs.",
    )
    parser.add_argument(
        "--convert-to",
        help="Target format: webp, jpeg, png or disabled.",
    )
    parser.add_argument(
        "--quality",
        type=float,
        help="Encoding quality between 0 (exclusive) and 1.",
    )
    parser.add_argument(
        "--resize-mode",
        help=(
            "none, fit, fill, longest_edge, shortest_edge, width or height."
        ),
    )
    parser.add_argument(
        "--skip-formats",
        help="Comma separated extensions that are never processed.",
    )
    parser.add_argument(
        "--log-level",
        help="Set the logging level for the run (defaults to INFO).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Mirror log records to stderr.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-images process",
        description=(
            "Convert, compress and resize images referenced by vault notes, "
            "then update the links that point at them."
        ),
        epilog=(
            "Run `vault-images process config init` to scaffold the default "
            f"{CONFIG_FILENAME} template."
        ),
    )
    subparsers = parser.add_subparsers(dest="scope", required=True)

    note_parser = subparsers.add_parser(
        "note",
        help="Process the images referenced by one note or canvas.",
    )
    note_parser.add_argument(
        "path", help="Vault path of the note (.md) or canvas (.canvas)."
    )
    _add_common_arguments(note_parser)

    folder_parser = subparsers.add_parser(
        "folder",
        help="Process the images stored in (or linked from) a folder.",
    )
    folder_parser.add_argument("path", help="Vault path of the folder.")
    folder_parser.add_argument(
        "--recursive",
        action="store_true",
        help="Include subfolders.",
    )
    folder_parser.add_argument(
        "--linked",
        action="store_true",
        help=(
            "Process images linked from the folder's notes instead of the "
            "image files stored in it."
        ),
    )
    _add_common_arguments(folder_parser)

    vault_parser = subparsers.add_parser(
        "vault",
        help="Process every image in the vault.",
    )
    _add_common_arguments(vault_parser)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args_list = list(argv) if argv is not None else list(sys.argv[1:])

    if args_list[:1] == ["config"]:
        return _handle_config(args_list[1:])

    parser = _build_parser()
    args = parser.parse_args(args_list)

    overrides = ConfigOverrides(
        vault_root=args.vault,
        log_level=args.log_level,
        convert_to=args.convert_to,
        quality=args.quality,
        resize_mode=args.resize_mode,
        skip_formats=args.skip_formats,
    )

    try:
        load_result = load_config(
            config_path=args.config,
            overrides=overrides,
            workspace_path=args.workspace,
        )
    except (BatchConfigError, WorkspaceError) as exc:
        parser.error(str(exc))

    config = load_result.config
    if config.vault_root is None:
        parser.error(
            "No vault configured. Pass --vault or set [paths] vault in "
            f"{CONFIG_FILENAME}."
        )

    settings = config.vault if args.scope == "vault" else config.note

    try:
        store = Vault(config.vault_root)
        templater = FilenameTemplater(settings.filename_template)
    except (VaultError, TemplateConfigError) as exc:
        sys.stderr.write(str(exc) + "\n")
        return 1

    logger, log_path = configure_logger(
        "vault_images.batch",
        log_dir=load_result.layout.path_for("logs"),
        level=config.log_level,
        verbose=args.verbose,
    )
    logger.debug(
        "process CLI invoked",
        extra={"scope": args.scope, "vault": str(store.root)},
    )

    reporter = ProgressReporter(
        RichStatusIndicator,
        schedule=immediate_scheduler,
    )

    try:
        summary = _dispatch(args, store, settings, logger, reporter, templater)
    except (ScanError, VaultError) as exc:
        logger.error("Batch setup failed", extra={"reason": str(exc)})
        sys.stderr.write(str(exc) + "\n")
        return 1

    _print_summary(summary, log_path)
    return summary.exit_code


def _dispatch(
    args: argparse.Namespace,
    store: Vault,
    settings: ConversionSettings,
    logger: logging.Logger,
    reporter: ProgressReporter,
    templater: FilenameTemplater,
) -> BatchSummary:
    options = dict(
        settings=settings,
        processor=PillowImageProcessor(),
        logger=logger,
        reporter=reporter,
        templater=templater,
    )
    if args.scope == "note":
        return process_note(store, args.path, **options)
    if args.scope == "folder":
        return process_folder(
            store,
            args.path,
            recursive=args.recursive,
            linked=args.linked,
            **options,
        )
    return process_vault(store, **options)


def _print_summary(summary: BatchSummary, log_path: Path) -> None:
    lines = [f"vault-images {summary.scope.value} summary:"]
    if summary.noop:
        lines.append(f"  {summary.reason}")
    else:
        lines.extend(
            [
                "  processed: {0}".format(summary.processed_count),
                "  renamed:   {0}".format(summary.renamed_count),
                "  skipped:   {0}".format(summary.skipped_count),
                "  failed:    {0}".format(summary.failure_count),
            ]
        )
        for outcome in summary.outcomes:
            if outcome.status is OutcomeStatus.SKIPPED_ERROR:
                lines.append(f"  ! {outcome.source}: {outcome.reason}")
    lines.append("  log file:  {0}".format(log_path))
    sys.stdout.write("\n".join(lines) + "\n")


def _handle_config(argv: Sequence[str]) -> int:
    parser = _build_config_parser()
    args = parser.parse_args(argv)

    return _handle_config_init(args)


def _build_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-images process config",
        description="Manage configuration files for batch image processing.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help=f"Write the default {CONFIG_FILENAME} template.",
    )
    init_parser.add_argument(
        "--path",
        type=Path,
        help=(
            "Destination for the config TOML (defaults to the workspace "
            "config directory)."
        ),
    )
    init_parser.add_argument(
        "--workspace",
        type=Path,
        help="Workspace root override used to resolve the default path.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the destination if a config already exists.",
    )
    return parser


def _handle_config_init(args: argparse.Namespace) -> int:
    template = config_templates.get_template("batch")
    try:
        target = _resolve_config_target(args, template)
    except WorkspaceError as exc:
        sys.stderr.write(str(exc) + "\n")
        return 1

    try:
        written = template.write(target, overwrite=args.force)
    except ConfigTemplateError as exc:
        sys.stderr.write(str(exc) + "\n")
        return 1

    sys.stdout.write(f"Wrote vault-images config to {written}\n")
    return 0


def _resolve_config_target(
    args: argparse.Namespace, template: config_templates.ConfigTemplate
) -> Path:
    if args.path is not None:
        candidate = args.path.expanduser()
        if not candidate.is_absolute():
            candidate = (Path.cwd() / candidate).resolve()
        return candidate

    layout = workspace_mod.ensure_workspace(path=args.workspace)
    return template.default_path(layout)


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
