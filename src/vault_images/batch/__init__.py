"""Batch image conversion for notes, folders and whole vaults."""

from __future__ import annotations

from .config import (
    BatchConfig,
    BatchConfigError,
    ConflictMode,
    ConversionSettings,
    EnlargeReduce,
    ResizeMode,
    load_config,
)
from .orchestrator import (
    BatchSummary,
    OutcomeStatus,
    Scope,
    TargetOutcome,
    process_folder,
    process_folder_linked,
    process_note,
    process_vault,
    run_batch,
)
from .processor import (
    ImageProcessingError,
    ImageProcessor,
    PillowImageProcessor,
    ProcessedImage,
)
from .progress import ProgressReporter, RichStatusIndicator
from .scanner import ReferenceSet, ScanError
from .templating import FilenameTemplater, TemplateConfigError
from .vault import DocumentStore, Vault, VaultError, VaultFile

__all__ = [
    "BatchConfig",
    "BatchConfigError",
    "BatchSummary",
    "ConflictMode",
    "ConversionSettings",
    "DocumentStore",
    "EnlargeReduce",
    "FilenameTemplater",
    "ImageProcessingError",
    "ImageProcessor",
    "OutcomeStatus",
    "PillowImageProcessor",
    "ProcessedImage",
    "ProgressReporter",
    "ReferenceSet",
    "ResizeMode",
    "RichStatusIndicator",
    "ScanError",
    "Scope",
    "TargetOutcome",
    "TemplateConfigError",
    "Vault",
    "VaultError",
    "VaultFile",
    "load_config",
    "process_folder",
    "process_folder_linked",
    "process_note",
    "process_vault",
    "run_batch",
]
