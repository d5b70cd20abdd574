"""Inputs shared by every generation stage of one job run."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GenerationContext:
    """What each prompt is built from.

    Attributes:
        git_path: Local checkout the file tools read from.
        catalogue: Newline-delimited relative path listing.
        readme: README body (existing or generated).
        address: Repository address as submitted.
        branch: Checked-out branch.
    """

    git_path: str
    catalogue: str
    readme: str
    address: str
    branch: str

    def prompt_fields(self) -> dict[str, str]:
        return {
            "catalogue": self.catalogue,
            "readme": self.readme,
            "git_repository": self.address,
            "branch": self.branch,
        }
