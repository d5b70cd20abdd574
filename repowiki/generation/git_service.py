"""Local checkouts and commit history via the ``git`` executable.

Checkouts live under ``<repositories_dir>/<organization>/<name>``. An
existing checkout is refreshed with ``git pull``; a failed pull keeps the
checkout as it is and logs a warning. A failed clone is fatal for the job.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

logger = logging.getLogger("repowiki.generation.git")

# Field/record separators for `git log --format`; never appear in commit text.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


class GitError(RuntimeError):
    """A git command failed or the address could not be parsed."""


@dataclass(frozen=True)
class RepositorySnapshot:
    """State of a checkout at the start of a generation run."""

    local_path: str
    repository_name: str
    organization: str
    branch: str
    commit_sha: str
    commit_time: str
    commit_author: str
    commit_message: str


@dataclass(frozen=True)
class CommitEntry:
    sha: str
    author: str
    message: str
    time: str


def repository_path(address: str, base_dir: str | Path) -> tuple[Path, str, str]:
    """Map a repository address to ``(local_path, organization, name)``.

    ``https://github.com/acme/widgets.git`` → ``<base_dir>/acme/widgets``.
    """
    segments = [s for s in urlsplit(address).path.split("/") if s]
    if len(segments) < 2:
        raise GitError(f"Cannot derive organization and name from address: {address}")
    organization = segments[0]
    name = segments[1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return Path(base_dir) / organization / name, organization, name


def _authenticated_url(address: str, user: str | None, password: str | None) -> str:
    """Embed credentials in an HTTPS clone URL."""
    if not user:
        return address
    parts = urlsplit(address)
    if parts.scheme not in ("http", "https"):
        return address
    credentials = quote(user, safe="")
    if password:
        credentials += ":" + quote(password, safe="")
    netloc = f"{credentials}@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def _git(args: list[str], cwd: Path | None = None) -> str:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise GitError("git executable not found") from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise GitError(f"git {args[0]} failed: {stderr or e}") from e
    return result.stdout


def pull_repository(
    address: str,
    base_dir: str | Path,
    user: str | None = None,
    password: str | None = None,
    branch: str | None = None,
) -> RepositorySnapshot:
    """Clone or refresh *address* and describe the checked-out HEAD.

    Raises:
        GitError: clone failed, or the checkout has no readable HEAD.
    """
    local_path, organization, name = repository_path(address, base_dir)

    if (local_path / ".git").is_dir():
        logger.info("Updating checkout %s", local_path)
        try:
            _git(["pull", "--ff-only"], cwd=local_path)
        except GitError as e:
            logger.warning("Pull failed, using existing checkout: %s", e)
    else:
        logger.info("Cloning %s into %s", address, local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        args = ["clone"]
        if branch:
            args += ["--branch", branch]
        args += [_authenticated_url(address, user, password), str(local_path)]
        _git(args)

    current_branch = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=local_path).strip()
    head = _git(
        ["log", "-1", f"--format=%H{_FIELD_SEP}%cI{_FIELD_SEP}%cn{_FIELD_SEP}%B"],
        cwd=local_path,
    )
    fields = head.split(_FIELD_SEP, 3)
    if len(fields) != 4:
        raise GitError(f"Could not read HEAD commit of {local_path}")
    sha, commit_time, author, message = fields

    return RepositorySnapshot(
        local_path=str(local_path),
        repository_name=name,
        organization=organization,
        branch=current_branch,
        commit_sha=sha.strip(),
        commit_time=commit_time.strip(),
        commit_author=author.strip(),
        commit_message=message.strip(),
    )


def commit_log(local_path: str | Path, limit: int = 20) -> list[CommitEntry]:
    """Return the last *limit* commits, oldest first."""
    output = _git(
        [
            "log",
            f"-{limit}",
            f"--format=%H{_FIELD_SEP}%cn{_FIELD_SEP}%cI{_FIELD_SEP}%B{_RECORD_SEP}",
        ],
        cwd=Path(local_path),
    )
    entries: list[CommitEntry] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip()
        if not record:
            continue
        fields = record.split(_FIELD_SEP, 3)
        if len(fields) != 4:
            logger.warning("Skipping unparseable log record: %r", record[:80])
            continue
        sha, author, time, message = fields
        entries.append(CommitEntry(
            sha=sha.strip(), author=author.strip(), message=message.strip(), time=time.strip(),
        ))
    # git log is newest first
    entries.reverse()
    return entries
