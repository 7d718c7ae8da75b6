"""
Source discovery: collect ABL files (and optionally node documents) under a directory.

ABL sources are procedures (.p), windows (.w), classes (.cls) and include
files (.i). Node documents (.json) are trees produced by an external parser
and are collected only when asked for.

Typical usage:
    from pathlib import Path
    from abllint.traversal import find_abl_files, find_source_files

    # Procedures, windows, classes and includes
    sources = find_abl_files(Path("./src"))

    # Sources plus node documents, also skipping a legacy tree
    everything = find_source_files(
        Path("./src"),
        include_documents=True,
        ignore_dirs=DEFAULT_IGNORE_DIRS | {"legacy"},
    )
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Set

logger = logging.getLogger(__name__)

ABL_SUFFIXES: frozenset[str] = frozenset({".p", ".w", ".cls", ".i"})
NODE_DOCUMENT_SUFFIX = ".json"

# Directory names never descended into unless the caller passes its own set
DEFAULT_IGNORE_DIRS: Set[str] = {
    # Compiled r-code, PCT/ANT work areas, packaging output
    "build",
    "dist",
    "out",
    "rcode",
    ".builder",
    "PCTWork",
    # Vendored code
    "node_modules",
    "vendor",
    "third_party",
    # VCS metadata
    ".git",
    ".svn",
    ".hg",
    # Progress Developer Studio / Eclipse and other editors
    ".vscode",
    ".idea",
    ".settings",
    # Tool caches and virtualenvs
    "__pycache__",
    ".cache",
    ".pytest_cache",
    "venv",
    ".venv",
}


def is_abl_file(path: Path, suffixes: Iterable[str] = ABL_SUFFIXES) -> bool:
    """
    Check if a file is ABL source by extension (case-insensitive).

    Examples:
        >>> is_abl_file(Path("customer.p"))
        True
        >>> is_abl_file(Path("Order.CLS"))
        True
        >>> is_abl_file(Path("notes.txt"))
        False
    """
    return path.suffix.lower() in {s.lower() for s in suffixes}


def is_node_document(path: Path) -> bool:
    return path.suffix.lower() == NODE_DOCUMENT_SUFFIX


def is_include_file(path: Path) -> bool:
    """Include files (.i) are fragments, not complete compilation units."""
    return path.suffix.lower() == ".i"


def should_ignore_directory(dir_path: Path, ignore_dirs: Set[str]) -> bool:
    """Only the directory name is matched, never the full path."""
    return dir_path.name in ignore_dirs


def _iter_candidates(directory: Path, ignore_dirs: Set[str], follow_symlinks: bool) -> Iterator[Path]:
    """Yield every regular file below ``directory``, pruning ignored directories."""
    try:
        entries = list(directory.iterdir())
    except PermissionError as e:
        logger.warning("No permission to list %s: %s", directory, e)
        return
    except OSError as e:
        logger.warning("Cannot list %s: %s", directory, e)
        return

    for entry in entries:
        if entry.is_symlink() and not follow_symlinks:
            logger.debug("Not following symlink %s", entry)
            continue
        if entry.is_dir():
            if should_ignore_directory(entry, ignore_dirs):
                logger.debug("Pruned directory %s", entry)
                continue
            yield from _iter_candidates(entry, ignore_dirs, follow_symlinks)
        elif entry.is_file():
            yield entry


def find_source_files(
    root: Path,
    include_documents: bool = False,
    ignore_dirs: Optional[Set[str]] = None,
    suffixes: Optional[Iterable[str]] = None,
    follow_symlinks: bool = False,
    filter_fn: Optional[Callable[[Path], bool]] = None,
) -> list[Path]:
    """
    Recursively find ABL source files (and optionally node documents).

    Args:
        root: Directory to search.
        include_documents: If True, also collect .json node documents.
        ignore_dirs: Directory names to skip. If None, uses DEFAULT_IGNORE_DIRS.
        suffixes: Source extensions to accept. If None, uses ABL_SUFFIXES.
        follow_symlinks: If False (default), symlinks are skipped.
        filter_fn: Optional predicate; only files for which it returns
                   True are kept.

    Returns:
        Matching files, sorted by path.

    Raises:
        FileNotFoundError: If ``root`` does not exist.
        NotADirectoryError: If ``root`` is not a directory.

    Unreadable subdirectories are logged and skipped.
    """
    skip = DEFAULT_IGNORE_DIRS if ignore_dirs is None else ignore_dirs
    accepted = frozenset(s.lower() for s in (suffixes if suffixes is not None else ABL_SUFFIXES))

    root = root.resolve()
    if not root.exists():
        logger.error("Root directory does not exist: %s", root)
        raise FileNotFoundError(f"Root directory does not exist: {root}")
    if not root.is_dir():
        logger.error("Root path is not a directory: %s", root)
        raise NotADirectoryError(f"Root path is not a directory: {root}")

    logger.info("Starting traversal from: %s", root)
    logger.debug("Accepting %s (node documents: %s)", sorted(accepted), include_documents)

    found: list[Path] = []
    for path in _iter_candidates(root, skip, follow_symlinks):
        if not (is_abl_file(path, accepted) or (include_documents and is_node_document(path))):
            continue
        if filter_fn is not None and not filter_fn(path):
            logger.debug("Rejected by filter: %s", path)
            continue
        found.append(path)

    found.sort()
    logger.info("Traversal complete: found %d file(s) in %s", len(found), root)
    return found


def find_abl_files(root: Path, ignore_dirs: Optional[Set[str]] = None, follow_symlinks: bool = False) -> list[Path]:
    """Recursively find .p/.w/.cls/.i files, sorted by path."""
    return find_source_files(root, ignore_dirs=ignore_dirs, follow_symlinks=follow_symlinks)


def find_node_documents(
    root: Path, ignore_dirs: Optional[Set[str]] = None, follow_symlinks: bool = False
) -> list[Path]:
    """Recursively find .json node documents only, sorted by path."""
    return find_source_files(
        root,
        include_documents=True,
        ignore_dirs=ignore_dirs,
        follow_symlinks=follow_symlinks,
        filter_fn=is_node_document,
    )
