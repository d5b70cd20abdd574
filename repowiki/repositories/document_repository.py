"""Data access for everything a generation run writes.

A job's artifacts (document scope, catalog tree, generated bodies,
attribution, changelog, overview) are only ever replaced as a whole:
``delete_for_job`` removes them in foreign-key order, children first,
so it works the same on SQLite with or without the foreign_keys pragma.
"""

from typing import Iterable

from sqlalchemy.orm import Session

from ..models import (
    Document,
    DocumentCatalog,
    DocumentCommitRecord,
    DocumentFileItem,
    DocumentFileItemSource,
    DocumentOverview,
)


class DocumentRepository:
    """Per-job document rows. Callers own the commit."""

    def __init__(self, db: Session):
        self.db = db

    def has_overview(self, document_id: str) -> bool:
        query = self.db.query(DocumentOverview.id).filter(
            DocumentOverview.document_id == document_id
        )
        return query.first() is not None

    def add_all(self, rows: Iterable[object]) -> None:
        self.db.add_all(list(rows))

    def delete_commit_records(self, job_id: str) -> int:
        return (
            self.db.query(DocumentCommitRecord)
            .filter(DocumentCommitRecord.repository_id == job_id)
            .delete(synchronize_session=False)
        )

    def delete_catalog_tree(self, job_id: str) -> int:
        """Delete a job's catalogs with their file items and attribution."""
        catalog_ids = (
            self.db.query(DocumentCatalog.id)
            .filter(DocumentCatalog.repository_id == job_id)
            .scalar_subquery()
        )
        item_ids = (
            self.db.query(DocumentFileItem.id)
            .filter(DocumentFileItem.catalog_id.in_(catalog_ids))
            .scalar_subquery()
        )
        self.db.query(DocumentFileItemSource).filter(
            DocumentFileItemSource.file_item_id.in_(item_ids)
        ).delete(synchronize_session=False)
        self.db.query(DocumentFileItem).filter(
            DocumentFileItem.catalog_id.in_(catalog_ids)
        ).delete(synchronize_session=False)
        return (
            self.db.query(DocumentCatalog)
            .filter(DocumentCatalog.repository_id == job_id)
            .delete(synchronize_session=False)
        )

    def delete_documents(self, job_id: str) -> int:
        """Delete a job's document scopes and their overviews."""
        document_ids = (
            self.db.query(Document.id)
            .filter(Document.repository_id == job_id)
            .scalar_subquery()
        )
        self.db.query(DocumentOverview).filter(
            DocumentOverview.document_id.in_(document_ids)
        ).delete(synchronize_session=False)
        return (
            self.db.query(Document)
            .filter(Document.repository_id == job_id)
            .delete(synchronize_session=False)
        )

    def delete_for_job(self, job_id: str) -> None:
        """Remove every artifact of a job, children before parents."""
        self.delete_catalog_tree(job_id)
        self.delete_commit_records(job_id)
        self.delete_documents(job_id)
