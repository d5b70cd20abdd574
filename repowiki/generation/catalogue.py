"""Repository path listing and README lookup.

``build_catalogue`` walks a checkout and returns the newline-delimited list
of relative file paths the planner and writers see. The root
``.gitignore`` is compiled with gitwildmatch semantics and matched against
root-relative POSIX paths, both lowercased so matching is case-insensitive.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pathspec import PathSpec

logger = logging.getLogger("repowiki.generation.catalogue")

MAX_CATALOGUE_FILE_BYTES = 1024 * 1024

README_NAMES = ("README.md", "README.txt", "README")

SKIPPED_EXTENSIONS = frozenset({
    # images
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".ico", ".svg",
    # binaries
    ".exe", ".dll", ".so", ".class", ".o", ".a",
    # archives
    ".zip", ".tar", ".gz", ".bz2", ".xz",
    # audio / video
    ".mp3", ".wav", ".flac", ".aac", ".ogg",
    ".mp4", ".avi", ".mkv", ".mov", ".wmv",
    # office documents and data
    ".pdf", ".doc", ".docx", ".ppt", ".pptx", ".xls", ".xlsx", ".csv",
    # styles and markup
    ".css", ".scss", ".less", ".html", ".htm",
})


def load_ignore_spec(root: str | Path) -> PathSpec:
    """Compile the root ``.gitignore``; a missing file yields an empty spec."""
    path = Path(root) / ".gitignore"
    if not path.is_file():
        return PathSpec.from_lines("gitwildmatch", [])
    patterns = []
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line.lower())
    return PathSpec.from_lines("gitwildmatch", patterns)


def _ignored(relative: str, is_dir: bool, spec: PathSpec) -> bool:
    relative = relative.lower()
    if is_dir:
        return spec.match_file(relative + "/") or spec.match_file(relative)
    return spec.match_file(relative)


def _include_file(path: Path) -> bool:
    if path.suffix.lower() in SKIPPED_EXTENSIONS:
        return False
    try:
        return path.stat().st_size < MAX_CATALOGUE_FILE_BYTES
    except OSError:
        return False


def scan_paths(root: str | Path) -> list[str]:
    """Relative, forward-slash paths of every catalogued file, sorted."""
    root = Path(root)
    spec = load_ignore_spec(root)
    found: list[str] = []

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        prefix = current.relative_to(root).as_posix()
        prefix = "" if prefix == "." else prefix + "/"
        # Prune in place so os.walk never descends into skipped directories.
        dirnames[:] = [
            d for d in dirnames
            if not d.startswith(".") and not _ignored(prefix + d, True, spec)
        ]
        for filename in filenames:
            if filename.startswith(".") or _ignored(prefix + filename, False, spec):
                continue
            if _include_file(current / filename):
                found.append(prefix + filename)

    found.sort()
    return found


def build_catalogue(root: str | Path) -> str:
    """Newline-delimited path listing with root README files removed."""
    readme_names = {name.lower() for name in README_NAMES}
    paths = [p for p in scan_paths(root) if p.lower() not in readme_names]
    logger.debug("Catalogue of %s has %d entries", root, len(paths))
    return "".join(f"{p}\n" for p in paths)


def read_readme(root: str | Path) -> str:
    """Content of README.md, README.txt or README (first found), else ''."""
    for name in README_NAMES:
        path = Path(root) / name
        if path.is_file():
            return path.read_text(encoding="utf-8", errors="replace")
    return ""
