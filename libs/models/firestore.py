"""Pydantic models for Firestore collections.

These models define the structure of the documents stored in Firestore
and are used for data validation and serialization.
"""
from typing import Any, List

from pydantic import BaseModel, Field, field_validator


class FirestoreCompanyInfo(BaseModel):
    """`users/{uid}/companyinfo/details` written at onboarding."""
    companyName: str = Field("Unknown Company", description="Company name.")
    employeeCount: str = Field("Unknown Employee Count", description="Headcount as entered by the user.")
    locations: List[str] = Field(default_factory=list, description="Regions the company operates in.")
    industry: str = Field("Unknown Industry", description="Industry label.")

    @field_validator("employeeCount", mode="before")
    @classmethod
    def stringify_count(cls, v: Any) -> str:
        return "Unknown Employee Count" if v in (None, "") else str(v)

    @field_validator("locations", mode="before")
    @classmethod
    def split_locations(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return [str(item) for item in v]


class FirestoreDocument(BaseModel):
    """`users/{uid}/documents/{doc_id}` produced by the ingestion service."""
    name: str = Field(..., description="Display name of the uploaded file.")
    tag: str = Field("", description="One-sentence descriptive tag generated at upload.")
    summary: str = Field("", description="Pre-computed summary of the document text.")
