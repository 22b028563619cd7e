"""Pydantic models for the Avenir API.

Request and response bodies use camelCase on the wire (aliases) and
snake_case in Python.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatTurn(BaseModel):
    """One prior message of the conversation as sent by the client."""

    role: Literal["user", "assistant"] = Field(..., description="Who wrote the message", examples=["user"])
    content: str = Field("", description="Message text")
    timestamp: Optional[datetime] = Field(None, description="When the message was sent")


class ChatRequest(BaseModel):
    """Request model for the chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", description="Requesting user", examples=["uid_123"])
    message: str = Field(
        ...,
        max_length=8000,
        description="The question to answer",
        examples=["What are vendor options for diabetes management?"],
    )
    chat_history: List[ChatTurn] = Field(default_factory=list, alias="chatHistory")
    use_web_search: bool = Field(False, alias="useWebSearch", description="Allow one web search for external evidence")
    selected_docs: List[str] = Field(
        default_factory=list,
        alias="selectedDocs",
        description="Document ids pinned by the user; triggers the single-document fast path",
    )
    rfp_context: Optional[str] = Field(None, alias="rfpContext", description="Context for RFP generation")

    @field_validator("message", "user_id")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("selected_docs", mode="before")
    @classmethod
    def drop_empty_ids(cls, v):
        if v is None:
            return []
        return [doc_id for doc_id in v if isinstance(doc_id, str) and doc_id.strip()]


class ChatResponse(BaseModel):
    """Response model for the chat endpoint.

    Attributes:
        question_type: Classified question type (absent on the fast path)
        reply: HTML reply body with the follow-up JSON removed
        evidence: Citation-style evidence summary or a fixed notice
        follow_ups: Zero or two suggested follow-up questions
    """

    model_config = ConfigDict(populate_by_name=True)

    question_type: Optional[str] = Field(None, alias="questionType", examples=["vendor_recommendation"])
    reply: str = Field(..., description="Answer body (HTML)")
    evidence: Optional[str] = Field(None, description="Evidence summary shown beside the reply")
    follow_ups: List[str] = Field(default_factory=list, alias="followUps", max_length=2)
    request_id: Optional[str] = Field(None, alias="requestId", description="Request identifier for tracking")


class OnboardingStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    onboarding_complete: bool = Field(..., alias="onboardingComplete")


class OnboardingRequest(BaseModel):
    """Company profile captured during onboarding."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    company_name: str = Field(..., alias="companyName", max_length=200)
    employee_count: Union[int, str] = Field(..., alias="employeeCount")
    locations: List[str] = Field(default_factory=list, description="Regions the company operates in")
    industry: str = Field("Unknown Industry", max_length=200)

    @field_validator("user_id", "company_name")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("locations", mode="before")
    @classmethod
    def split_locations(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v


class OnboardingResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    """Response model for health check endpoints.

    Attributes:
        status: Service status
        service: Service name
        version: Service version
        cache_backend: Evidence cache backend in use
        timestamp: Current timestamp
    """

    status: str = Field(description="Service status", examples=["healthy"])
    service: str = Field(description="Service name", examples=["api"])
    version: str = Field(description="Service version", examples=["0.1.0"])
    cache_backend: str = Field(description="Evidence cache backend", examples=["memory"])
    timestamp: float = Field(description="Current timestamp")


class ErrorResponse(BaseModel):
    """Error body returned for failed requests."""

    error: str = Field(description="Human-readable error message", examples=["Failed to process chat request."])
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")
