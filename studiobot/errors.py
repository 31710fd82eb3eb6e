from __future__ import annotations


class StudiobotError(Exception):
    """Base class for studiobot errors."""


class KnowledgeBaseError(StudiobotError):
    """The knowledge base is missing or structurally unusable."""


class ModelInvocationError(StudiobotError):
    """The model call failed or returned no text."""


class ModelResponseError(StudiobotError):
    """The model returned text that does not decode to the reply object."""
