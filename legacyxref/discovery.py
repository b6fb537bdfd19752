"""Source file discovery

Recursive enumeration of project files by extension. The analyzers never
walk directories themselves; they are handed the lists produced here.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
import logging

from legacyxref.config import SOURCE_EXTENSIONS

logger = logging.getLogger(__name__)


def find_source_files(root: Union[str, Path], extensions: Iterable[str]) -> List[Path]:
    """Return all files under root whose suffix matches, sorted by path"""
    root = Path(root)
    wanted = {ext.lower() for ext in extensions}

    if not root.is_dir():
        logger.warning(f"Source root {root} is not a directory")
        return []

    files = [p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in wanted]
    return sorted(files)


def classify_source_file(path: Path,
                         extensions: Optional[Dict[str, List[str]]] = None) -> Optional[str]:
    """Map a file to 'program', 'copybook' or 'jcl' by its suffix"""
    extensions = extensions or SOURCE_EXTENSIONS
    suffix = path.suffix.lower()
    for kind, suffixes in extensions.items():
        if suffix in {s.lower() for s in suffixes}:
            return kind
    return None


def discover_project(root: Union[str, Path],
                     extensions: Optional[Dict[str, List[str]]] = None) -> Dict[str, List[Path]]:
    """Group every recognised source file under root by kind"""
    extensions = extensions or SOURCE_EXTENSIONS
    all_suffixes = [s for suffixes in extensions.values() for s in suffixes]

    grouped: Dict[str, List[Path]] = {kind: [] for kind in extensions}
    for path in find_source_files(root, all_suffixes):
        kind = classify_source_file(path, extensions)
        if kind:
            grouped[kind].append(path)

    logger.info(
        "Discovered " + ", ".join(f"{len(paths)} {kind}" for kind, paths in grouped.items())
        + f" file(s) under {root}"
    )
    return grouped
