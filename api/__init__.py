"""Avenir API Service.

This package contains the FastAPI application and the benefits question
pipeline behind it.

Main components:
- main.py: FastAPI application, logging setup and middleware
- models.py: Pydantic models for requests and responses
- orchestrators/: LangGraph pipeline, intent classifier, evidence gatherer
- composer/: prompt templates, answer composition, output parsing, evidence summary
- tools/: adapters for the LLM, vector index, web search, LegiScan, BLS and Firestore
"""

# Avoid importing heavy modules (e.g., FastAPI app) at package import time.
__all__ = []
