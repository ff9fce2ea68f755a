"""Reference scanning: which images does a scope touch, and who links them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional

from .formats import is_supported
from .links import (
    CanvasFormatError,
    extract_link_targets,
    is_external,
    iter_canvas_file_nodes,
    parse_canvas,
)
from .vault import (
    CANVAS_EXTENSION,
    MARKDOWN_EXTENSION,
    DocumentStore,
    VaultError,
    VaultFile,
    normalize_vault_path,
)

_LOGGER = logging.getLogger(__name__)


class ScanError(RuntimeError):
    """Raised when a scan scope (document or folder) does not exist."""


class DocumentKind(Enum):
    NOTE = "note"
    CANVAS = "canvas"


@dataclass(frozen=True)
class ImageTarget:
    """A unique image file considered by a run."""

    file: VaultFile

    @property
    def path(self) -> str:
        return self.file.path

    @property
    def extension(self) -> str:
        return self.file.extension

    @property
    def size(self) -> int:
        return self.file.size


@dataclass(frozen=True)
class ReferringDocument:
    """A note or canvas mentioning a target ``mentions`` times."""

    file: VaultFile
    kind: DocumentKind
    mentions: int = 1
    # Distinct spellings of the link as written in the document.
    links: tuple[str, ...] = ()

    @property
    def path(self) -> str:
        return self.file.path


class ReferenceSet:
    """Ordered mapping of image path to the documents that reference it.

    Each path is stored once no matter how many documents (or repeated
    mentions within one document) point at it. Iteration follows the order
    in which paths were first seen.
    """

    def __init__(self) -> None:
        self._targets: dict[str, ImageTarget] = {}
        self._mentions: dict[str, dict[str, list[str]]] = {}
        self._documents: dict[str, tuple[VaultFile, DocumentKind]] = {}

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, path: object) -> bool:
        return path in self._targets

    def __iter__(self) -> Iterator[ImageTarget]:
        return iter(tuple(self._targets.values()))

    def add_target(self, image: VaultFile) -> ImageTarget:
        target = self._targets.get(image.path)
        if target is None:
            target = ImageTarget(image)
            self._targets[image.path] = target
            self._mentions[image.path] = {}
        return target

    def add_reference(
        self,
        image: VaultFile,
        document: VaultFile,
        kind: DocumentKind,
        link: Optional[str] = None,
    ) -> None:
        self.add_target(image)
        self._documents.setdefault(document.path, (document, kind))
        mentions = self._mentions[image.path].setdefault(document.path, [])
        mentions.append(image.path if link is None else link)

    def targets(self) -> tuple[ImageTarget, ...]:
        return tuple(self._targets.values())

    def paths(self) -> tuple[str, ...]:
        return tuple(self._targets)

    def documents_for(self, path: str) -> tuple[ReferringDocument, ...]:
        documents = []
        for document_path, links in self._mentions.get(path, {}).items():
            file, kind = self._documents[document_path]
            documents.append(
                ReferringDocument(
                    file,
                    kind,
                    mentions=len(links),
                    links=tuple(dict.fromkeys(links)),
                )
            )
        return tuple(documents)


def scan_document(
    store: DocumentStore,
    path: str,
    *,
    logger: Optional[logging.Logger] = None,
) -> ReferenceSet:
    """Collect the images referenced by a single note or canvas."""

    document = _resolve_scope_document(store, path)
    references = ReferenceSet()
    _collect_document(store, references, document, logger or _LOGGER)
    return references


def scan_folder(
    store: DocumentStore,
    folder: str,
    *,
    recursive: bool = False,
) -> ReferenceSet:
    """Collect image files stored in ``folder`` without reading documents.

    The result never carries referring documents, so folder runs rewrite no
    links.
    """

    normalized = _require_folder(store, folder)
    references = ReferenceSet()
    for item in store.list_files(normalized, recursive=recursive):
        if is_supported(item.name):
            references.add_target(item)
    return references


def scan_folder_documents(
    store: DocumentStore,
    folder: str,
    *,
    recursive: bool = False,
    logger: Optional[logging.Logger] = None,
) -> ReferenceSet:
    """Collect images linked from the notes and canvases inside ``folder``."""

    normalized = _require_folder(store, folder)
    listed = store.list_files(normalized, recursive=recursive)
    documents = _documents_in(listed)
    return _merge_documents(store, documents, logger or _LOGGER)


def scan_vault(
    store: DocumentStore,
    *,
    include_unreferenced: bool = True,
    logger: Optional[logging.Logger] = None,
) -> ReferenceSet:
    """Collect images referenced anywhere in the vault.

    Notes and canvases are visited in vault-path order. With
    ``include_unreferenced`` the remaining images in the vault are appended
    afterwards, also in vault-path order.
    """

    documents = [*store.list_markdown_files(), *store.list_canvas_files()]
    references = _merge_documents(store, documents, logger or _LOGGER)
    if include_unreferenced:
        for item in store.list_files("", recursive=True):
            if is_supported(item.name):
                references.add_target(item)
    return references


def _documents_in(files: Iterable[VaultFile]) -> list[VaultFile]:
    return [
        item
        for item in files
        if item.extension in (MARKDOWN_EXTENSION, CANVAS_EXTENSION)
    ]


def _merge_documents(
    store: DocumentStore,
    documents: Iterable[VaultFile],
    logger: logging.Logger,
) -> ReferenceSet:
    references = ReferenceSet()
    for document in sorted(documents, key=lambda item: item.path):
        _collect_document(store, references, document, logger)
    return references


def _collect_document(
    store: DocumentStore,
    references: ReferenceSet,
    document: VaultFile,
    logger: logging.Logger,
) -> None:
    kind = _kind_for(document)
    try:
        content = store.read_text(document.path)
        if kind is DocumentKind.CANVAS:
            raw_targets = iter_canvas_file_nodes(parse_canvas(content))
        else:
            raw_targets = extract_link_targets(content)
    except (OSError, UnicodeDecodeError, CanvasFormatError) as exc:
        logger.debug(
            "Skipped unreadable document during scan",
            extra={"document": document.path, "reason": str(exc)},
        )
        return

    for raw in raw_targets:
        if is_external(raw):
            continue
        image = _resolve_target(store, raw, document, kind)
        if image is None or not is_supported(image.name):
            continue
        references.add_reference(image, document, kind, link=raw)


def _resolve_target(
    store: DocumentStore,
    raw: str,
    document: VaultFile,
    kind: DocumentKind,
) -> Optional[VaultFile]:
    if kind is DocumentKind.CANVAS:
        # Canvas file nodes always hold vault paths.
        return store.resolve(raw)
    return store.resolve_link(raw, document.path)


def _kind_for(document: VaultFile) -> DocumentKind:
    if document.extension == CANVAS_EXTENSION:
        return DocumentKind.CANVAS
    return DocumentKind.NOTE


def _resolve_scope_document(store: DocumentStore, path: str) -> VaultFile:
    document = store.resolve(path)
    if document is None:
        raise ScanError(f"Document not found in vault: {path}")
    if document.extension not in (MARKDOWN_EXTENSION, CANVAS_EXTENSION):
        raise ScanError(
            f"Expected a note (.md) or canvas (.canvas) document: {path}"
        )
    return document


def _require_folder(store: DocumentStore, folder: str) -> str:
    try:
        normalized = normalize_vault_path(folder)
    except VaultError as exc:
        raise ScanError(str(exc)) from exc
    if not store.is_folder(normalized):
        raise ScanError(f"Folder not found in vault: {folder}")
    return normalized


__all__ = [
    "DocumentKind",
    "ImageTarget",
    "ReferenceSet",
    "ReferringDocument",
    "ScanError",
    "scan_document",
    "scan_folder",
    "scan_folder_documents",
    "scan_vault",
]
