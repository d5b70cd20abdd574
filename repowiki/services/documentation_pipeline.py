"""
Per-job documentation pipeline.

Stage order is fixed:

  1. clone or refresh the checkout and record its metadata on the job
  2. replace the job's document scope (deletes every prior artifact of the job)
  3. scan the catalogue and read the README (generate one if absent)
  4. delete prior changelog rows, then write the new changelog; the delete
     is its own stage and finds nothing when step 2 already ran
  5. write the project overview (only when the scope has none)
  6. plan the topic tree
  7. generate every topic body in parallel
  8. optionally repair mermaid diagrams
  9. persist catalog rows, bodies and attribution in one commit

Any exception escaping ``run`` fails the job; the orchestrator owns that
transition and the cleanup. Dropped topics (step 7) are not failures.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..generation.catalogue import build_catalogue, read_readme
from ..generation.context import GenerationContext
from ..generation.git_service import commit_log, pull_repository
from ..generation.llm_client import CompletionClient
from ..generation.mermaid_repair import MermaidRepairer
from ..generation.planner import CataloguePlanner, TopicNode, flatten_topics
from ..generation.summaries import CommitSummary, SummaryGenerator
from ..generation.topic_writer import GeneratedTopic, TopicGenerator
from ..generation.writer_pool import WriterPool
from ..models import (
    Document,
    DocumentCatalog,
    DocumentCommitRecord,
    DocumentFileItem,
    DocumentFileItemSource,
    DocumentOverview,
    RepositoryJob,
)
from ..repositories import DocumentRepository
from .repository_service import RepositoryService

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Counts reported for a finished run."""
    topics: int
    documents: int
    dropped: List[str]
    repaired_diagrams: int = 0


def _new_id() -> str:
    return uuid.uuid4().hex


def _catalog_rows(
    topics: List[TopicNode], job_id: str, document_id: str
) -> List[DocumentCatalog]:
    return [
        DocumentCatalog(
            id=topic.id,
            repository_id=job_id,
            document_id=document_id,
            parent_id=topic.parent_id,
            name=topic.name,
            url=topic.url,
            description=topic.description,
            prompt=topic.prompt,
            order=topic.order,
        )
        for topic in topics
    ]


def _file_item_row(generated: GeneratedTopic) -> DocumentFileItem:
    item = DocumentFileItem(
        id=_new_id(),
        catalog_id=generated.catalog_id,
        title=generated.title,
        description='',
        content=generated.content,
        size=len(generated.content),
        request_token=generated.prompt_tokens,
        response_token=generated.completion_tokens,
        elapsed_ms=generated.elapsed_ms,
    )
    item.sources = [
        DocumentFileItemSource(
            id=_new_id(),
            address=path,
            name=path.rsplit("/", 1)[-1],
        )
        for path in generated.source_files
    ]
    return item


class DocumentationPipeline:
    """
    Runs every generation stage for one repository job.

    Collaborators are injectable so tests can swap the completion client or
    any single stage; by default all of them share one ``CompletionClient``.
    """

    def __init__(
        self,
        client: Optional[CompletionClient] = None,
        summaries: Optional[SummaryGenerator] = None,
        planner: Optional[CataloguePlanner] = None,
        writer_pool: Optional[WriterPool] = None,
        mermaid_repairer: Optional[MermaidRepairer] = None,
        repositories_dir: Optional[str] = None,
        repair_mermaid: Optional[bool] = None,
        commit_log_limit: Optional[int] = None,
    ):
        client = client or CompletionClient()
        self.summaries = summaries or SummaryGenerator(client)
        self.planner = planner or CataloguePlanner(client)
        self.writer_pool = writer_pool or WriterPool(TopicGenerator(client))
        self.mermaid_repairer = mermaid_repairer or MermaidRepairer(client)
        self.repositories_dir = repositories_dir or settings.repositories_dir
        self.repair_mermaid = settings.repair_mermaid if repair_mermaid is None else repair_mermaid
        self.commit_log_limit = commit_log_limit or settings.commit_log_limit

    async def run(self, job: RepositoryJob, db: Session) -> PipelineResult:
        service = RepositoryService(db)
        documents = DocumentRepository(db)

        # 1. Checkout
        snapshot = await asyncio.to_thread(
            pull_repository,
            job.address,
            self.repositories_dir,
            job.git_user_name,
            job.git_password,
            job.branch or None,
        )
        service.update_snapshot(job.id, snapshot)
        logger.info(
            "Checked out %s/%s at %s (%s)",
            snapshot.organization, snapshot.repository_name,
            snapshot.commit_sha[:8], snapshot.branch,
        )

        # 2. Document scope
        documents.delete_for_job(job.id)
        document = Document(
            id=_new_id(),
            repository_id=job.id,
            git_path=snapshot.local_path,
            status="Processing",
        )
        db.add(document)
        db.commit()

        # 3. Catalogue and README
        catalogue = await asyncio.to_thread(build_catalogue, snapshot.local_path)
        readme = await asyncio.to_thread(read_readme, snapshot.local_path)
        context = GenerationContext(
            git_path=snapshot.local_path,
            catalogue=catalogue,
            readme=readme,
            address=job.address,
            branch=snapshot.branch,
        )
        if not readme.strip():
            logger.info("No README in checkout, generating one")
            context = replace(context, readme=await self.summaries.generate_readme(context))

        pending_rows: list = []

        # 4. Changelog (a no-op delete after step 2)
        documents.delete_commit_records(job.id)
        db.commit()
        commits = await asyncio.to_thread(commit_log, snapshot.local_path, self.commit_log_limit)
        summary: CommitSummary = await self.summaries.generate_changelog(context, commits)
        pending_rows.append(DocumentCommitRecord(
            id=_new_id(),
            repository_id=job.id,
            commit_id=summary.commit_id or snapshot.commit_sha,
            commit_message=summary.content,
            author=summary.author,
            last_update=datetime.now(timezone.utc),
        ))

        # 5. Overview
        if not documents.has_overview(document.id):
            overview = await self.summaries.generate_overview(context)
            pending_rows.append(DocumentOverview(
                id=_new_id(),
                document_id=document.id,
                title='',
                content=overview,
            ))

        # 6. Topic tree
        tree = await self.planner.plan(context)
        topics = flatten_topics(tree)

        # 7. Topic bodies
        fan_out = await self.writer_pool.run(tree, context)

        # 8. Mermaid
        repaired = 0
        if self.repair_mermaid and fan_out.documents:
            repaired = await self.mermaid_repairer.repair(fan_out.documents)

        # 9. Persist
        pending_rows.extend(_catalog_rows(topics, job.id, document.id))
        documents.add_all(pending_rows)
        # Catalog rows must exist before the items that reference them.
        db.flush()
        documents.add_all(_file_item_row(d) for d in fan_out.documents)
        document.status = "Completed"
        document.last_update = datetime.now(timezone.utc)
        db.commit()

        result = PipelineResult(
            topics=len(topics),
            documents=len(fan_out.documents),
            dropped=[t.name for t in fan_out.failed],
            repaired_diagrams=repaired,
        )
        logger.info(
            "Persisted %d topic(s), %d document(s), %d dropped, %d diagram(s) repaired",
            result.topics, result.documents, len(result.dropped), result.repaired_diagrams,
        )
        return result
