"""Sequential batch processing of scanned images with link rewriting."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .config import ConversionSettings
from .eligibility import all_skippable, is_noop, should_process_with
from .formats import same_format
from .processor import ImageProcessor, ProcessedImage
from .progress import ProgressReporter
from .renamer import resolve_conflict
from .rewriter import rewrite_references
from .scanner import (
    ImageTarget,
    ReferenceSet,
    scan_document,
    scan_folder,
    scan_folder_documents,
    scan_vault,
)
from .templating import FilenameTemplater
from .vault import DocumentStore, VaultFile, join_vault_path


class Scope(Enum):
    NOTE = "note"
    FOLDER = "folder"
    FOLDER_LINKED = "folder-linked"
    VAULT = "vault"


class OutcomeStatus(Enum):
    PROCESSED_RENAMED = "processed_renamed"
    PROCESSED = "processed"
    SKIPPED_FILTER = "skipped_filter"
    SKIPPED_ERROR = "skipped_error"


@dataclass(frozen=True)
class TargetOutcome:
    """What happened to one image."""

    source: str
    status: OutcomeStatus
    destination: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[Exception] = None
    documents: tuple[str, ...] = ()


@dataclass(frozen=True)
class BatchSummary:
    """Aggregated results of a run."""

    scope: Scope
    total: int
    outcomes: tuple[TargetOutcome, ...] = ()
    elapsed: float = 0.0
    noop: bool = False
    reason: Optional[str] = None

    @property
    def processed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if _is_processed(outcome))

    @property
    def renamed_count(self) -> int:
        return len(self.renamed)

    @property
    def skipped_count(self) -> int:
        return self._count(OutcomeStatus.SKIPPED_FILTER)

    @property
    def failure_count(self) -> int:
        return self._count(OutcomeStatus.SKIPPED_ERROR)

    @property
    def renamed(self) -> tuple[tuple[str, str], ...]:
        return tuple(
            (outcome.source, outcome.destination)
            for outcome in self.outcomes
            if outcome.status is OutcomeStatus.PROCESSED_RENAMED
            and outcome.destination is not None
        )

    @property
    def exit_code(self) -> int:
        return 1 if self.failure_count else 0

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)


class _TargetFailed(Exception):
    """Internal signal carrying a per-target failure to the loop."""

    def __init__(self, stage: str, error: Exception) -> None:
        super().__init__(f"{stage} failed: {error}")
        self.stage = stage
        self.error = error


def process_note(
    store: DocumentStore,
    path: str,
    *,
    settings: ConversionSettings,
    processor: ImageProcessor,
    logger: logging.Logger,
    reporter: Optional[ProgressReporter] = None,
    templater: Optional[FilenameTemplater] = None,
) -> BatchSummary:
    """Process the images referenced by one note or canvas.

    Only that document's links are rewritten, even when other documents
    reference the same images.
    """

    if is_noop(settings):
        return _noop(Scope.NOTE, logger, reporter)
    references = scan_document(store, path, logger=logger)
    return run_batch(
        store,
        references,
        scope=Scope.NOTE,
        settings=settings,
        processor=processor,
        logger=logger,
        reporter=reporter,
        templater=templater,
        note=store.resolve(path),
    )


def process_folder(
    store: DocumentStore,
    folder: str,
    *,
    recursive: bool = False,
    linked: bool = False,
    settings: ConversionSettings,
    processor: ImageProcessor,
    logger: logging.Logger,
    reporter: Optional[ProgressReporter] = None,
    templater: Optional[FilenameTemplater] = None,
) -> BatchSummary:
    """Process images stored in ``folder``, or linked from notes inside it.

    Plain folder runs rewrite no links. ``linked`` runs rewrite the notes and
    canvases inside the folder that reference a renamed image.
    """

    scope = Scope.FOLDER_LINKED if linked else Scope.FOLDER
    if is_noop(settings):
        return _noop(scope, logger, reporter)
    if linked:
        references = scan_folder_documents(
            store, folder, recursive=recursive, logger=logger
        )
    else:
        references = scan_folder(store, folder, recursive=recursive)
    return run_batch(
        store,
        references,
        scope=scope,
        settings=settings,
        processor=processor,
        logger=logger,
        reporter=reporter,
        templater=templater,
    )


def process_folder_linked(
    store: DocumentStore,
    folder: str,
    *,
    recursive: bool = False,
    settings: ConversionSettings,
    processor: ImageProcessor,
    logger: logging.Logger,
    reporter: Optional[ProgressReporter] = None,
    templater: Optional[FilenameTemplater] = None,
) -> BatchSummary:
    return process_folder(
        store,
        folder,
        recursive=recursive,
        linked=True,
        settings=settings,
        processor=processor,
        logger=logger,
        reporter=reporter,
        templater=templater,
    )


def process_vault(
    store: DocumentStore,
    *,
    settings: ConversionSettings,
    processor: ImageProcessor,
    logger: logging.Logger,
    reporter: Optional[ProgressReporter] = None,
    templater: Optional[FilenameTemplater] = None,
) -> BatchSummary:
    """Process every image in the vault, rewriting every referencing doc."""

    if is_noop(settings):
        return _noop(Scope.VAULT, logger, reporter)
    references = scan_vault(store, logger=logger)
    return run_batch(
        store,
        references,
        scope=Scope.VAULT,
        settings=settings,
        processor=processor,
        logger=logger,
        reporter=reporter,
        templater=templater,
    )


def run_batch(
    store: DocumentStore,
    references: ReferenceSet,
    *,
    scope: Scope,
    settings: ConversionSettings,
    processor: ImageProcessor,
    logger: logging.Logger,
    reporter: Optional[ProgressReporter] = None,
    templater: Optional[FilenameTemplater] = None,
    note: Optional[VaultFile] = None,
    clock: Callable[[], float] = time.monotonic,
) -> BatchSummary:
    """Process ``references`` one target at a time.

    A target's failure is recorded and the loop moves on; nothing raised
    while handling a single image escapes this function.
    """

    templater = templater or FilenameTemplater(settings.filename_template)
    targets = references.targets()
    total = len(targets)

    logger.info(
        "Starting image batch",
        extra={
            "scope": scope.value,
            "target_count": total,
            "convert_to": settings.convert_to,
            "quality": settings.quality,
            "resize_mode": settings.resize_mode.value,
        },
    )

    if total == 0:
        return _early_exit(scope, 0, "No images found.", logger, reporter)
    if all_skippable(targets, settings):
        return _early_exit(
            scope,
            total,
            "No processing needed: every image is already in its final "
            "format and no compression or resizing is configured.",
            logger,
            reporter,
        )

    started = clock()
    if reporter is not None:
        reporter.start(total)

    outcomes: list[TargetOutcome] = []
    for target in targets:
        outcome = _process_target(
            store,
            references,
            target,
            settings=settings,
            processor=processor,
            templater=templater,
            note=note,
            logger=logger,
        )
        outcomes.append(outcome)
        _log_outcome(logger, outcome)
        if reporter is not None:
            reporter.advance()

    summary = BatchSummary(
        scope=scope,
        total=total,
        outcomes=tuple(outcomes),
        elapsed=clock() - started,
    )
    if reporter is not None:
        reporter.finish(summary.processed_count)

    logger.info(
        "Completed image batch",
        extra={
            "scope": scope.value,
            "processed_count": summary.processed_count,
            "renamed_count": summary.renamed_count,
            "skipped_count": summary.skipped_count,
            "failure_count": summary.failure_count,
            "elapsed_seconds": round(summary.elapsed, 3),
        },
    )
    return summary


def _process_target(
    store: DocumentStore,
    references: ReferenceSet,
    target: ImageTarget,
    *,
    settings: ConversionSettings,
    processor: ImageProcessor,
    templater: FilenameTemplater,
    note: Optional[VaultFile],
    logger: logging.Logger,
) -> TargetOutcome:
    source = target.path
    if not should_process_with(target, settings):
        return TargetOutcome(
            source=source,
            status=OutcomeStatus.SKIPPED_FILTER,
            reason="Excluded by skip_formats or skip_if_target_format.",
        )
    if not processor.supports(target.extension):
        return TargetOutcome(
            source=source,
            status=OutcomeStatus.SKIPPED_FILTER,
            reason=f"Format '.{target.extension}' is not supported.",
        )

    try:
        processed = _transform(store, target, settings, processor)
        destination = _destination_for(
            store, target, processed, settings, templater, note
        )
        _move_and_write(store, source, destination, processed, logger)
    except _TargetFailed as failure:
        return TargetOutcome(
            source=source,
            status=OutcomeStatus.SKIPPED_ERROR,
            reason=str(failure),
            error=failure.error,
        )

    if destination == source:
        return TargetOutcome(
            source=source,
            status=OutcomeStatus.PROCESSED,
            destination=destination,
        )

    updated = _rewrite_links(
        store, references, source, destination, logger
    )
    return TargetOutcome(
        source=source,
        status=OutcomeStatus.PROCESSED_RENAMED,
        destination=destination,
        documents=updated,
    )


def _transform(
    store: DocumentStore,
    target: ImageTarget,
    settings: ConversionSettings,
    processor: ImageProcessor,
) -> ProcessedImage:
    try:
        data = store.read_bytes(target.path)
    except Exception as exc:
        raise _TargetFailed("read", exc) from exc
    try:
        return processor.transform(
            data, settings, source_extension=target.extension
        )
    except Exception as exc:
        raise _TargetFailed("transform", exc) from exc


def _destination_for(
    store: DocumentStore,
    target: ImageTarget,
    processed: ProcessedImage,
    settings: ConversionSettings,
    templater: FilenameTemplater,
    note: Optional[VaultFile],
) -> str:
    image = target.file
    if same_format(processed.extension, image.extension):
        # Keep the original spelling (.jpg stays .jpg, .PNG stays .PNG).
        extension = image.name.rsplit(".", 1)[-1]
    else:
        extension = processed.extension
    try:
        stem = templater.render(image, note=note)
        desired = f"{stem}.{extension}"
        if desired == image.name:
            return image.path
        final = resolve_conflict(
            store, image.parent, desired, settings.conflict_resolution
        )
    except Exception as exc:
        raise _TargetFailed("naming", exc) from exc
    return join_vault_path(image.parent, final)


def _move_and_write(
    store: DocumentStore,
    source: str,
    destination: str,
    processed: ProcessedImage,
    logger: logging.Logger,
) -> None:
    renamed = destination != source
    stash: Optional[str] = None
    if renamed:
        # A file already at the destination (reuse mode) is set aside until
        # the processed bytes are safely written under its name.
        stash = _stash_existing(store, destination)
        try:
            store.rename(source, destination)
        except Exception as exc:
            _restore_stash(store, stash, destination, logger)
            raise _TargetFailed("rename", exc) from exc

    if store.resolve(destination) is None:
        # The rename is left in place; the file is not where it should be.
        if stash is not None:
            logger.warning(
                "Replaced file kept aside",
                extra={"destination": destination, "stash": stash},
            )
        raise _TargetFailed(
            "resolve",
            FileNotFoundError(f"File not found after rename: {destination}"),
        )

    try:
        store.write_bytes(destination, processed.data)
    except Exception as exc:
        if renamed and _rollback_rename(store, source, destination, logger):
            _restore_stash(store, stash, destination, logger)
        raise _TargetFailed("write", exc) from exc

    if stash is not None:
        _discard_stash(store, stash, logger)


def _stash_existing(store: DocumentStore, destination: str) -> Optional[str]:
    if not store.exists(destination):
        return None
    parent, _, name = destination.rpartition("/")
    stash = join_vault_path(
        parent, f".{name}.{uuid.uuid4().hex[:8]}.replaced"
    )
    try:
        store.rename(destination, stash)
    except Exception as exc:
        raise _TargetFailed("rename", exc) from exc
    return stash


def _restore_stash(
    store: DocumentStore,
    stash: Optional[str],
    destination: str,
    logger: logging.Logger,
) -> None:
    if stash is None:
        return
    try:
        store.rename(stash, destination)
    except Exception:
        logger.exception(
            "Failed to restore replaced file",
            extra={"destination": destination, "stash": stash},
        )


def _discard_stash(
    store: DocumentStore, stash: str, logger: logging.Logger
) -> None:
    try:
        store.delete(stash)
    except Exception as exc:
        logger.warning(
            "Failed to remove replaced file",
            extra={"stash": stash, "reason": str(exc)},
        )


def _rollback_rename(
    store: DocumentStore,
    source: str,
    destination: str,
    logger: logging.Logger,
) -> bool:
    try:
        store.rename(destination, source)
    except Exception:
        logger.exception(
            "Failed to roll back rename after write error",
            extra={"source": source, "destination": destination},
        )
        return False
    return True


def _rewrite_links(
    store: DocumentStore,
    references: ReferenceSet,
    source: str,
    destination: str,
    logger: logging.Logger,
) -> tuple[str, ...]:
    updated: list[str] = []
    for document in references.documents_for(source):
        try:
            count = rewrite_references(store, document, source, destination)
        except Exception as exc:
            logger.error(
                "Failed to update links",
                extra={
                    "document": document.path,
                    "source": source,
                    "destination": destination,
                    "reason": str(exc),
                },
            )
            continue
        if count:
            updated.append(document.path)
    return tuple(updated)


def _noop(
    scope: Scope,
    logger: logging.Logger,
    reporter: Optional[ProgressReporter],
) -> BatchSummary:
    return _early_exit(
        scope,
        0,
        "No processing needed: original format selected with no "
        "compression or resizing.",
        logger,
        reporter,
    )


def _early_exit(
    scope: Scope,
    total: int,
    reason: str,
    logger: logging.Logger,
    reporter: Optional[ProgressReporter],
) -> BatchSummary:
    logger.info(reason, extra={"scope": scope.value, "target_count": total})
    if reporter is not None:
        reporter.notice(reason)
    return BatchSummary(scope=scope, total=total, noop=True, reason=reason)


def _log_outcome(logger: logging.Logger, outcome: TargetOutcome) -> None:
    details = {
        "source": outcome.source,
        "status": outcome.status.value,
        "destination": outcome.destination,
    }
    if outcome.status is OutcomeStatus.SKIPPED_ERROR:
        logger.error(
            "Failed to process image",
            extra={**details, "reason": outcome.reason},
        )
    elif outcome.status is OutcomeStatus.SKIPPED_FILTER:
        logger.debug(
            "Skipped image", extra={**details, "reason": outcome.reason}
        )
    else:
        logger.info(
            "Processed image",
            extra={**details, "documents": list(outcome.documents)},
        )


def _is_processed(outcome: TargetOutcome) -> bool:
    return outcome.status in (
        OutcomeStatus.PROCESSED,
        OutcomeStatus.PROCESSED_RENAMED,
    )


__all__ = [
    "BatchSummary",
    "OutcomeStatus",
    "Scope",
    "TargetOutcome",
    "process_folder",
    "process_folder_linked",
    "process_note",
    "process_vault",
    "run_batch",
]
