"""LLM access for the benefits pipeline."""

from .generation import ChatGenerator

__all__ = ["ChatGenerator"]
