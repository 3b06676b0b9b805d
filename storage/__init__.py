"""Document store collaborator: owner-scoped persistence for visualization documents."""

from .documents import (
    DocumentStore,
    InMemoryDocumentStore,
    PostgresDocumentStore,
    create_document_store,
    generate_share_id,
)

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "PostgresDocumentStore",
    "create_document_store",
    "generate_share_id",
]
