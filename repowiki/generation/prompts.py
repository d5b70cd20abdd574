"""Prompt templates for every generation stage.

Templates are ``str.format`` strings; literal braces are doubled. Each
template names the tag the model must wrap its answer in, and the stage
that uses it extracts that tag. No runtime logic here, pure data only.
"""

# Shared preamble describing the repository context.
_REPOSITORY_CONTEXT = """<repository>
Address: {git_repository}
Branch: {branch}
</repository>

<catalogue>
{catalogue}
</catalogue>
"""

# ---------------------------------------------------------------------------
# README (only when the checkout has none)
# ---------------------------------------------------------------------------

GENERATE_README = _REPOSITORY_CONTEXT + """
You are a senior engineer writing the README for the repository above.
The catalogue lists every tracked file path. Use the file tools to read the
files you need (entry points, build files, configuration) before writing.

Cover: what the project does, how it is structured, how to build and run it,
and how to configure it. Only state facts you verified in the source.

Wrap the complete README in <readme></readme> tags.
"""

# ---------------------------------------------------------------------------
# Changelog
# ---------------------------------------------------------------------------

COMMIT_ANALYZE = """<repository>
Address: {git_repository}
Branch: {branch}
</repository>

<readme>
{readme}
</readme>

<commits>
{commit_message}
</commits>

You are maintaining the changelog of the repository above. The commits are
listed oldest first, each with its author, time and message.

Group related commits, describe user-visible changes in plain language,
and mention who made notable changes. Do not invent changes that the commit
messages do not support.

Wrap the changelog in <changelog></changelog> tags.
"""

COMMIT_ENTRY = """Author: {author}
Time: {time}
Commit: {sha}
{message}
"""

# ---------------------------------------------------------------------------
# Project overview
# ---------------------------------------------------------------------------

OVERVIEW = _REPOSITORY_CONTEXT + """
<readme>
{readme}
</readme>

Write a project overview for a reader who has never seen this codebase:
purpose, main components and how they interact, key technologies, and where
to start reading. Read source files with the tools to ground every claim.
Use Markdown headings and, where it helps, a mermaid diagram of the
architecture.

Wrap the overview in <blog></blog> tags.
"""

# ---------------------------------------------------------------------------
# Documentation structure (catalogue planner)
# ---------------------------------------------------------------------------

ANALYZE_CATALOGUE = _REPOSITORY_CONTEXT + """
<readme>
{readme}
</readme>

You are a documentation architect. Design the table of contents for this
repository's documentation. Read the files you need with the tools first.

Rules:
- Each item is one page. Nest related pages with "children"; any depth is
  allowed but keep it shallow where you can.
- "name" is the human-readable page title.
- "title" is a short lowercase hyphenated identifier (used in URLs).
- "prompt" tells the writer exactly what the page must cover and which
  source files are relevant.
- Order items the way a reader should encounter them.

Output only JSON of this shape, wrapped in
<documentation_structure></documentation_structure> tags:

<documentation_structure>
{{
  "items": [
    {{
      "name": "Getting Started",
      "title": "getting-started",
      "prompt": "Explain installation and first run ...",
      "children": [
        {{
          "name": "Configuration",
          "title": "configuration",
          "prompt": "Document every configuration option ...",
          "children": []
        }}
      ]
    }}
  ]
}}
</documentation_structure>
"""

# ---------------------------------------------------------------------------
# Topic body
# ---------------------------------------------------------------------------

DEFAULT_TOPIC = _REPOSITORY_CONTEXT + """
<readme>
{readme}
</readme>

<topic>
Title: {title}
Instructions: {prompt}
</topic>

Write the documentation page for the topic above. Read the relevant source
files with the tools before writing; cite file paths when you describe code.
Use Markdown, include short code excerpts where they clarify, and use mermaid
diagrams for flows or structure when they help.

Wrap the finished page in <blog></blog> tags.
"""

# ---------------------------------------------------------------------------
# Mermaid repair
# ---------------------------------------------------------------------------

REPAIR_MERMAID = """The following mermaid diagram does not render.

Problems found:
{errors}

<mermaid>
{mermaid_content}
</mermaid>

Return only the corrected mermaid source, keeping the diagram's meaning.
Do not add explanations.
"""
