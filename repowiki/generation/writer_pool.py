"""
Parallel topic writers.

Flattens the planned tree to one task per topic and runs them with a
concurrency ceiling. A concurrency slot is held for one attempt only:
it is released before the backoff sleep and re-acquired for the next
attempt, so a topic stuck in backoff never blocks the others. A topic that
exhausts its retries is dropped with a logged error; the run continues.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ..core.config import settings
from .context import GenerationContext
from .planner import TopicNode, flatten_topics
from .retry import TOPIC_RETRY, RetryExhaustedError, RetryPolicy
from .topic_writer import GeneratedTopic, TopicGenerator

logger = logging.getLogger("repowiki.generation.writer_pool")


@dataclass
class FanOutResult:
    documents: list[GeneratedTopic] = field(default_factory=list)
    failed: list[TopicNode] = field(default_factory=list)


class WriterPool:
    """Runs a ``TopicGenerator`` over every node of a topic tree.

    Args:
        generator: Writes one topic body per call.
        max_concurrency: Topics generated at once; defaults to
            ``settings.task_max_concurrency``.
        retry: Per-topic retry policy; defaults to 5 attempts, 10s x attempt.
    """

    def __init__(
        self,
        generator: TopicGenerator,
        max_concurrency: int | None = None,
        retry: RetryPolicy = TOPIC_RETRY,
    ) -> None:
        self.generator = generator
        self.max_concurrency = max_concurrency or settings.task_max_concurrency
        self.retry = retry

    async def run(
        self, tree: tuple[TopicNode, ...] | list[TopicNode], context: GenerationContext
    ) -> FanOutResult:
        """Generate every topic; results keep the pre-order of the tree."""
        topics = flatten_topics(tree)
        total = len(topics)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        logger.info(
            "Generating %d topics (max %d parallel)", total, self.max_concurrency
        )

        async def _run_one(idx: int, topic: TopicNode) -> GeneratedTopic | None:
            async def attempt() -> GeneratedTopic:
                async with semaphore:
                    logger.info("[%d/%d] Writing topic: %s", idx, total, topic.name)
                    return await self.generator.generate(topic, context)

            try:
                document = await self.retry.run(attempt, label=f"Topic '{topic.name}'")
            except RetryExhaustedError as e:
                logger.error("Dropping topic '%s': %s", topic.name, e.last_error)
                return None
            logger.info("[%d/%d] Finished topic: %s", idx, total, topic.name)
            return document

        outcomes = await asyncio.gather(
            *(_run_one(idx, topic) for idx, topic in enumerate(topics, 1))
        )

        result = FanOutResult()
        for topic, document in zip(topics, outcomes):
            if document is None:
                result.failed.append(topic)
            else:
                result.documents.append(document)

        if result.failed:
            logger.warning(
                "%d of %d topics were dropped: %s",
                len(result.failed), total, ", ".join(t.name for t in result.failed),
            )
        return result
