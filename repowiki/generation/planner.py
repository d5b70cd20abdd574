"""
Catalogue planner: turns the repository listing into a topic tree.

The model is asked for JSON wrapped in ``<documentation_structure>`` tags.
Models routinely return near-JSON (trailing commas, fences, commentary), so
the payload goes through ``json_repair`` before schema validation. Parse
failures and call failures are both retried by ``PLANNER_RETRY``; if every
attempt fails the job fails, because without a tree nothing else can run.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass, field

from json_repair import repair_json
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.config import settings
from . import prompts
from .context import GenerationContext
from .extraction import extract_tagged
from .file_tools import FileFunctions
from .llm_client import ChatOptions, CompletionClient, user_message
from .retry import PLANNER_RETRY, RetryPolicy

logger = logging.getLogger("repowiki.generation.planner")

STRUCTURE_TAG = "documentation_structure"


class CatalogueParseError(ValueError):
    """Planner output could not be turned into a non-empty topic tree."""


# ---------------------------------------------------------------------------
# Wire schema
# ---------------------------------------------------------------------------

class CatalogueItem(BaseModel):
    """One planned page, recursively nested to any depth."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    title: str = ""
    prompt: str = ""
    children: list["CatalogueItem"] = Field(default_factory=list)

    @field_validator("title", "prompt", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("children", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return [] if v is None else v


CatalogueItem.model_rebuild()


class DocumentationStructure(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: list[CatalogueItem] = Field(default_factory=list)


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*\n?", "", text)
        text = re.sub(r"\n?```\s*$", "", text)
    return text.strip()


def parse_catalogue(raw: str) -> list[CatalogueItem]:
    """Parse planner output into validated items.

    Raises:
        CatalogueParseError: no JSON object, schema mismatch, or no items.
    """
    payload = _strip_fences(extract_tagged(raw, STRUCTURE_TAG))
    if not payload:
        raise CatalogueParseError("Planner returned an empty response")

    repaired = repair_json(payload, return_objects=True)
    # A bare list of items is accepted as the "items" array.
    if isinstance(repaired, list):
        repaired = {"items": repaired}
    if not isinstance(repaired, dict):
        raise CatalogueParseError(
            f"Planner output is not a JSON object: {json.dumps(repaired)[:200]}"
        )

    try:
        structure = DocumentationStructure.model_validate(repaired)
    except ValidationError as e:
        raise CatalogueParseError(f"Planner output does not match the schema: {e}") from e

    if not structure.items:
        raise CatalogueParseError("Planner returned no documentation items")
    return structure.items


# ---------------------------------------------------------------------------
# Planned tree
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TopicNode:
    """A planned topic with its identity and sibling position fixed."""

    id: str
    name: str
    url: str
    description: str
    prompt: str
    parent_id: str | None
    order: int
    children: tuple["TopicNode", ...] = field(default_factory=tuple)


def slugify(text: str) -> str:
    """Lowercase, hyphenated slug: ``"API Reference"`` → ``"api-reference"``."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug or "topic"


def build_topic_tree(
    items: list[CatalogueItem], parent_id: str | None = None
) -> tuple[TopicNode, ...]:
    """Assign ids, parent ids and per-level order (0, 1, 2 ...)."""
    nodes = []
    for order, item in enumerate(items):
        node_id = uuid.uuid4().hex
        nodes.append(TopicNode(
            id=node_id,
            name=item.name,
            url=slugify(item.title or item.name),
            description=item.title,
            prompt=item.prompt,
            parent_id=parent_id,
            order=order,
            children=build_topic_tree(item.children, node_id),
        ))
    return tuple(nodes)


def flatten_topics(nodes: tuple[TopicNode, ...] | list[TopicNode]) -> list[TopicNode]:
    """Pre-order list: every parent precedes its children."""
    flat: list[TopicNode] = []
    for node in nodes:
        flat.append(node)
        flat.extend(flatten_topics(node.children))
    return flat


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------

class CataloguePlanner:
    """Plans the topic tree for one repository with the analysis model.

    Args:
        client: Completion client shared by the pipeline.
        model: LiteLLM model string; defaults to ``settings.planner_model``.
        retry: Retry policy; defaults to 5 attempts, 5s x attempt.
    """

    def __init__(
        self,
        client: CompletionClient,
        model: str | None = None,
        retry: RetryPolicy = PLANNER_RETRY,
    ) -> None:
        self.client = client
        self.model = model or settings.planner_model
        self.retry = retry

    def build_prompt(self, context: GenerationContext) -> str:
        return prompts.ANALYZE_CATALOGUE.format(**context.prompt_fields())

    async def _attempt(self, context: GenerationContext) -> list[CatalogueItem]:
        options = ChatOptions(
            model=self.model,
            temperature=0.5,
            tools=FileFunctions(context.git_path),
        )
        result = await self.client.complete(
            [user_message(self.build_prompt(context))], options
        )
        return parse_catalogue(result.text)

    async def plan(self, context: GenerationContext) -> tuple[TopicNode, ...]:
        """Plan and number the topic tree.

        Raises:
            RetryExhaustedError: every attempt failed; wraps the last error.
        """
        items = await self.retry.run(
            lambda: self._attempt(context), label="Catalogue planning"
        )
        tree = build_topic_tree(items)
        logger.info(
            "Planned %d topics (%d top-level)", len(flatten_topics(tree)), len(tree)
        )
        return tree
