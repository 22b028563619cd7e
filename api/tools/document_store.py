"""Company and document store adapter over Firestore."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence

import structlog

from api.schemas.agent_state import CompanyProfile, DocumentSummary, DocumentTag
from api.tools.errors import AdapterError
from libs.firestore import company as company_store

logger = structlog.get_logger(__name__)


class FirestoreDocumentStore:
    """Read-only view of a user's company profile and uploaded documents.

    Firestore errors are re-raised as ``AdapterError("document_store", ...)``.
    """

    def __init__(self, client_factory: Optional[Callable[[], Any]] = None):
        if client_factory is None:
            from libs.firebase.client import get_firestore_async_client

            client_factory = get_firestore_async_client
        self._client_factory = client_factory
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def get_company_profile(self, user_id: str) -> Optional[CompanyProfile]:
        try:
            info = await company_store.get_company_info(self.client, user_id)
        except Exception as e:
            raise AdapterError("document_store", f"company profile lookup failed: {e}") from e
        if info is None:
            logger.warning("Company info does not exist", user_id=user_id)
            return None
        return CompanyProfile(
            name=info.companyName,
            employee_count=info.employeeCount,
            locations=info.locations,
            industry=info.industry,
        )

    async def get_all_document_tags(self, user_id: str) -> List[DocumentTag]:
        try:
            documents = await company_store.get_all_document_tags(self.client, user_id)
        except Exception as e:
            raise AdapterError("document_store", f"document listing failed: {e}") from e
        return [DocumentTag(name=d.name, tag=d.tag) for d in documents]

    async def get_documents_by_ids(self, user_id: str, doc_ids: Sequence[str]) -> List[DocumentSummary]:
        try:
            documents = await company_store.get_documents_by_ids(self.client, user_id, doc_ids)
        except Exception as e:
            raise AdapterError("document_store", f"selected document lookup failed: {e}") from e
        return [DocumentSummary(name=d.name, summary=d.summary) for d in documents]

    async def get_document_by_tag(self, user_id: str, tag: str) -> Optional[DocumentSummary]:
        try:
            document = await company_store.get_document_by_tag(self.client, user_id, tag)
        except Exception as e:
            raise AdapterError("document_store", f"tag lookup failed: {e}") from e
        if document is None:
            return None
        return DocumentSummary(name=document.name, summary=document.summary)
