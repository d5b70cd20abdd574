"""Single-shot summary documents: README, changelog and project overview.

Unlike topic bodies these are not retried here. A failure propagates to
the pipeline and fails the job, matching how the run treats any stage that
is not the per-topic fan-out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.config import settings
from . import prompts
from .context import GenerationContext
from .extraction import extract_tagged
from .file_tools import FileFunctions
from .git_service import CommitEntry
from .llm_client import ChatOptions, CompletionClient, user_message

logger = logging.getLogger("repowiki.generation.summaries")


@dataclass(frozen=True)
class CommitSummary:
    """Generated changelog plus the most recent committer."""

    content: str
    author: str
    commit_id: str


def format_commits(commits: list[CommitEntry]) -> str:
    return "\n".join(
        prompts.COMMIT_ENTRY.format(
            author=c.author, time=c.time, sha=c.sha, message=c.message
        )
        for c in commits
    )


class SummaryGenerator:
    """Generates the README, changelog and overview for one run."""

    def __init__(self, client: CompletionClient, model: str | None = None) -> None:
        self.client = client
        self.model = model or settings.chat_model

    async def generate_readme(self, context: GenerationContext) -> str:
        """Write a README for a checkout that has none."""
        prompt = prompts.GENERATE_README.format(**context.prompt_fields())
        options = ChatOptions(
            model=self.model, temperature=0.5, tools=FileFunctions(context.git_path)
        )
        result = await self.client.complete([user_message(prompt)], options)
        logger.info("Generated README (%d chars)", len(result.text))
        return extract_tagged(result.text, "readme")

    async def generate_changelog(
        self, context: GenerationContext, commits: list[CommitEntry]
    ) -> CommitSummary:
        """Summarise *commits* (oldest first) into a changelog.

        An empty history produces an empty summary without calling the model.
        """
        if not commits:
            logger.info("No commits to summarise")
            return CommitSummary(content="", author="", commit_id="")

        prompt = prompts.COMMIT_ANALYZE.format(
            readme=context.readme,
            git_repository=context.address,
            branch=context.branch,
            commit_message=format_commits(commits),
        )
        result = await self.client.complete(
            [user_message(prompt)], ChatOptions(model=self.model)
        )
        newest = commits[-1]
        return CommitSummary(
            content=extract_tagged(result.text, "changelog"),
            author=newest.author,
            commit_id=newest.sha,
        )

    async def generate_overview(self, context: GenerationContext) -> str:
        prompt = prompts.OVERVIEW.format(**context.prompt_fields())
        options = ChatOptions(
            model=self.model, temperature=0.5, tools=FileFunctions(context.git_path)
        )
        result = await self.client.complete([user_message(prompt)], options)
        return extract_tagged(result.text, "blog")
