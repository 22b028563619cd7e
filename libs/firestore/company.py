"""Functions for reading company context and uploaded documents from Firestore.

Layout (owned by the onboarding and ingestion services):
    users/{uid}                          -> {onboardingComplete, ...}
    users/{uid}/companyinfo/details      -> FirestoreCompanyInfo
    users/{uid}/documents/{doc_id}       -> FirestoreDocument
"""

from typing import List, Sequence

from google.cloud.firestore_v1.async_client import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter

from libs.models.firestore import FirestoreCompanyInfo, FirestoreDocument


def _documents(client: AsyncClient, uid: str):
    return client.collection(f"users/{uid}/documents")


async def get_company_info(client: AsyncClient, uid: str) -> FirestoreCompanyInfo | None:
    """Retrieves the company profile written at onboarding.

    Args:
        client: The asynchronous Firestore client.
        uid: The user's unique identifier.

    Returns:
        A FirestoreCompanyInfo object if the profile exists, otherwise None.
    """
    doc_ref = client.collection("users").document(uid).collection("companyinfo").document("details")
    snapshot = await doc_ref.get()

    if not snapshot.exists:
        return None

    return FirestoreCompanyInfo(**(snapshot.to_dict() or {}))


async def get_all_document_tags(client: AsyncClient, uid: str) -> List[FirestoreDocument]:
    """Returns name and tag of every uploaded document (summaries are not needed here)."""
    documents = []
    async for snapshot in _documents(client, uid).stream():
        data = snapshot.to_dict() or {}
        if data.get("name"):
            documents.append(FirestoreDocument(name=data["name"], tag=data.get("tag") or ""))
    return documents


async def get_documents_by_ids(client: AsyncClient, uid: str, doc_ids: Sequence[str]) -> List[FirestoreDocument]:
    """Returns the stored documents for the given ids, skipping ids that do not exist."""
    documents = []
    for doc_id in doc_ids:
        snapshot = await _documents(client, uid).document(doc_id).get()
        if snapshot.exists:
            documents.append(FirestoreDocument(**(snapshot.to_dict() or {})))
    return documents


async def get_document_by_tag(client: AsyncClient, uid: str, tag: str) -> FirestoreDocument | None:
    """Returns the first document whose tag matches exactly, or None."""
    query = _documents(client, uid).where(filter=FieldFilter("tag", "==", tag)).limit(1)
    async for snapshot in query.stream():
        return FirestoreDocument(**(snapshot.to_dict() or {}))
    return None


async def get_onboarding_status(client: AsyncClient, uid: str) -> bool:
    """True once the user has completed onboarding."""
    snapshot = await client.collection("users").document(uid).get()
    if not snapshot.exists:
        return False
    return bool((snapshot.to_dict() or {}).get("onboardingComplete", False))


async def save_onboarding_data(client: AsyncClient, uid: str, company: FirestoreCompanyInfo) -> None:
    """Stores the company profile and marks onboarding complete (merge writes)."""
    user_ref = client.collection("users").document(uid)
    await user_ref.collection("companyinfo").document("details").set(company.model_dump(), merge=True)
    await user_ref.set({"onboardingComplete": True}, merge=True)
