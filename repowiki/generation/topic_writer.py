"""Body generation for one topic of the planned tree."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from ..core.config import settings
from . import prompts
from .context import GenerationContext
from .extraction import extract_tagged
from .file_tools import FileFunctions, FileReadLog
from .llm_client import ChatOptions, CompletionClient, user_message
from .planner import TopicNode

logger = logging.getLogger("repowiki.generation.topic_writer")

BODY_TAG = "blog"


@dataclass
class GeneratedTopic:
    """Generated body for one topic, with the files read to write it.

    ``content`` is mutable so the mermaid pass can rewrite it in place.
    """

    catalog_id: str
    title: str
    content: str
    source_files: list[str] = field(default_factory=list)
    prompt_tokens: int = 0
    completion_tokens: int = 0
    elapsed_ms: int = 0


class TopicGenerator:
    """Writes one topic body per call.

    Every call gets a fresh ``FileReadLog``: attribution covers exactly the
    files read during that call, including when the same topic is retried.
    """

    def __init__(self, client: CompletionClient, model: str | None = None) -> None:
        self.client = client
        self.model = model or settings.chat_model

    def build_prompt(self, topic: TopicNode, context: GenerationContext) -> str:
        return prompts.DEFAULT_TOPIC.format(
            title=topic.name, prompt=topic.prompt, **context.prompt_fields()
        )

    async def generate(self, topic: TopicNode, context: GenerationContext) -> GeneratedTopic:
        read_log = FileReadLog()
        options = ChatOptions(
            model=self.model,
            temperature=0.5,
            tools=FileFunctions(context.git_path, read_log),
        )

        started = time.monotonic()
        result = await self.client.complete(
            [user_message(self.build_prompt(topic, context))], options
        )
        elapsed_ms = int((time.monotonic() - started) * 1000)

        logger.debug(
            "Topic '%s' written: %d chars, %d files read, %dms",
            topic.name, len(result.text), len(read_log), elapsed_ms,
        )
        return GeneratedTopic(
            catalog_id=topic.id,
            title=topic.name,
            content=extract_tagged(result.text, BODY_TAG),
            source_files=read_log.paths,
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
            elapsed_ms=elapsed_ms,
        )
