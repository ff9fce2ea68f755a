"""Shared testing helpers for the vault_images test suite."""

from .processing import (  # noqa: F401
    FakeProcessor,
    FlakyStore,
    RecordingIndicator,
    manual_scheduler,
)
from .vault import VaultBuilder, build_tree, make_image  # noqa: F401

__all__ = [
    "FakeProcessor",
    "FlakyStore",
    "RecordingIndicator",
    "VaultBuilder",
    "build_tree",
    "make_image",
    "manual_scheduler",
]
