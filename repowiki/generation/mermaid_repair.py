"""Mermaid diagram checking and model-assisted repair.

Extracts ```mermaid blocks from generated markdown and runs a structural
check in pure Python: a recognised diagram header, balanced brackets and
quotes, and balanced ``subgraph``/``end`` or block/``end`` pairs. This is
not a full mermaid parser. Blocks that fail the check, and blocks of
diagram types the checker does not know, are sent to the model with the
problems found; the reply replaces the original block in place.

Enabled by the REPAIR_MERMAID setting. Every failure is per block: it is
logged and the original block is kept.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..core.config import settings
from . import prompts
from .extraction import extract_tagged
from .llm_client import ChatOptions, CompletionClient, user_message
from .topic_writer import GeneratedTopic

logger = logging.getLogger("repowiki.generation.mermaid")

# Whole fenced block; group 1 is the diagram source.
_MERMAID_BLOCK_RE = re.compile(
    r"^```mermaid[ \t]*\n(.*?)^```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)

VALID = "valid"
INVALID = "invalid"
UNKNOWN = "unknown"

_FLOWCHART_TYPES = frozenset({"graph", "flowchart"})
_SEQUENCE_TYPES = frozenset({"sequenceDiagram"})
_BRACKETED_TYPES = _FLOWCHART_TYPES | frozenset({
    "classDiagram", "stateDiagram", "stateDiagram-v2", "erDiagram",
})
# Headers that only get the generic checks.
_HEADER_ONLY_TYPES = frozenset({
    "pie", "gantt", "journey", "gitGraph", "mindmap", "timeline",
})
KNOWN_TYPES = _BRACKETED_TYPES | _SEQUENCE_TYPES | _HEADER_ONLY_TYPES

_SEQUENCE_OPENERS = frozenset({"loop", "alt", "opt", "par", "critical", "break", "rect", "box"})
_PAIRS = {")": "(", "]": "[", "}": "{"}
_QUOTED_RE = re.compile(r'"[^"\n]*"')
# erDiagram relationship such as ||--o{ or }|..|{
_ER_CARDINALITY_RE = re.compile(r"[|}][|o](?:--|\.\.)[|o][|{]")


@dataclass(frozen=True)
class MermaidBlock:
    """A mermaid fence located in a document."""

    start: int        # offset of the opening fence
    end: int          # offset just past the closing fence
    line_number: int  # 1-based line of the opening fence
    source: str       # diagram text between the fences


@dataclass(frozen=True)
class MermaidError:
    """A problem found in one mermaid block."""

    block_index: int
    line_number: int
    source: str
    error: str


def extract_mermaid_blocks(content: str) -> list[MermaidBlock]:
    blocks: list[MermaidBlock] = []
    for match in _MERMAID_BLOCK_RE.finditer(content):
        blocks.append(MermaidBlock(
            start=match.start(),
            end=match.end(),
            line_number=content[:match.start()].count("\n") + 1,
            source=match.group(1),
        ))
    return blocks


def _diagram_lines(source: str) -> list[str]:
    """Non-empty lines with ``%%`` comments removed."""
    lines = []
    for raw in source.splitlines():
        line = raw.split("%%", 1)[0].strip()
        if line:
            lines.append(line)
    return lines


def _bracket_errors(lines: list[str], asymmetric_nodes: bool = False) -> list[str]:
    """Bracket and quote balance.

    With ``asymmetric_nodes``, a top-level ``>`` directly after a node id
    (flowchart ``A>Flag]``) opens a shape that ``]`` closes.
    """
    errors: list[str] = []
    stack: list[tuple[str, int]] = []
    for number, line in enumerate(lines, 1):
        if line.count('"') % 2:
            errors.append(f"Unbalanced quote on line {number}: {line}")
            continue
        text = _QUOTED_RE.sub('""', line)
        for pos, ch in enumerate(text):
            if ch in "([{":
                stack.append((ch, number))
            elif (
                asymmetric_nodes and ch == ">" and not stack
                and pos > 0 and (text[pos - 1].isalnum() or text[pos - 1] == "_")
            ):
                stack.append((ch, number))
            elif ch in _PAIRS:
                opener = stack[-1][0] if stack else None
                if opener != _PAIRS[ch] and not (ch == "]" and opener == ">"):
                    errors.append(f"Unexpected '{ch}' on line {number}: {line}")
                    return errors
                stack.pop()
    for ch, number in stack:
        errors.append(f"Unclosed '{ch}' opened on line {number}")
    return errors


def _block_errors(lines: list[str], openers: frozenset[str]) -> list[str]:
    depth = 0
    for number, line in enumerate(lines, 1):
        keyword = line.split()[0]
        if keyword in openers:
            depth += 1
        elif keyword == "end":
            depth -= 1
            if depth < 0:
                return [f"'end' without a matching block on line {number}"]
    if depth > 0:
        return [f"{depth} block(s) not closed with 'end'"]
    return []


def check_mermaid(source: str) -> tuple[str, list[str]]:
    """Structurally check one diagram.

    Returns:
        ``(status, problems)`` where status is VALID, INVALID or UNKNOWN
        (a diagram type this checker does not understand).
    """
    lines = _diagram_lines(source)
    if not lines:
        return INVALID, ["Diagram is empty"]

    header = lines[0].split()[0]
    if header not in KNOWN_TYPES:
        return UNKNOWN, [f"Unrecognised diagram type '{header}'"]

    body = lines[1:]
    errors: list[str] = []
    if header in _BRACKETED_TYPES:
        if header == "erDiagram":
            body = [_ER_CARDINALITY_RE.sub(" ", line) for line in body]
        errors.extend(_bracket_errors(body, asymmetric_nodes=header in _FLOWCHART_TYPES))
    else:
        errors.extend(
            f"Unbalanced quote on line {n}: {line}"
            for n, line in enumerate(body, 1) if line.count('"') % 2
        )
    if header in _FLOWCHART_TYPES:
        errors.extend(_block_errors(body, frozenset({"subgraph"})))
    elif header in _SEQUENCE_TYPES:
        errors.extend(_block_errors(body, _SEQUENCE_OPENERS))

    return (INVALID if errors else VALID), errors


def format_errors_for_prompt(errors: list[MermaidError]) -> str:
    """Bullet list of problems for the repair prompt."""
    return "\n".join(f"- (line {err.line_number}) {err.error}" for err in errors)


def _strip_mermaid_fence(text: str) -> str:
    text = extract_tagged(text, "mermaid").strip()
    text = re.sub(r"^```(?:mermaid)?[ \t]*\n?", "", text)
    text = re.sub(r"\n?```\s*$", "", text)
    return text.strip()


class MermaidRepairer:
    """Repairs broken mermaid blocks in generated documents."""

    def __init__(self, client: CompletionClient, model: str | None = None) -> None:
        self.client = client
        self.model = model or settings.chat_model

    async def _repair_source(self, source: str, errors: list[MermaidError]) -> str:
        prompt = prompts.REPAIR_MERMAID.format(
            errors=format_errors_for_prompt(errors), mermaid_content=source.strip()
        )
        result = await self.client.complete(
            [user_message(prompt)], ChatOptions(model=self.model, temperature=0)
        )
        return _strip_mermaid_fence(result.text)

    async def repair_content(self, content: str) -> tuple[str, int]:
        """Return ``(content, repaired_count)`` with broken blocks replaced.

        Text outside the replaced fences is preserved verbatim.
        """
        blocks = extract_mermaid_blocks(content)
        if not blocks:
            return content, 0

        pieces: list[str] = []
        cursor = 0
        repaired = 0
        for index, block in enumerate(blocks):
            pieces.append(content[cursor:block.start])
            cursor = block.end
            original = content[block.start:block.end]

            if not block.source.strip():
                pieces.append(original)
                continue

            status, problems = check_mermaid(block.source)
            if status == VALID:
                pieces.append(original)
                continue

            errors = [
                MermaidError(index, block.line_number, block.source, problem)
                for problem in problems
            ]
            try:
                fixed = await self._repair_source(block.source, errors)
            except Exception as e:
                logger.error(
                    "Mermaid repair failed for block at line %d: %s", block.line_number, e
                )
                pieces.append(original)
                continue

            if not fixed:
                logger.warning("Empty mermaid repair for block at line %d", block.line_number)
                pieces.append(original)
                continue

            pieces.append(f"```mermaid\n{fixed}\n```")
            repaired += 1
            logger.info("Repaired mermaid block at line %d (%s)", block.line_number, status)

        pieces.append(content[cursor:])
        return "".join(pieces), repaired

    async def repair(self, documents: list[GeneratedTopic]) -> int:
        """Repair every document in place; returns the number of blocks fixed."""
        total = 0
        for document in documents:
            document.content, count = await self.repair_content(document.content)
            total += count
        return total
