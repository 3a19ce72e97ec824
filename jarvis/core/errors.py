"""Planner exception taxonomy.

Every failure the planner can observe maps onto one of these classes.
Handlers catch them at the seam where they can degrade to a benign reply;
``plan()`` itself never raises for message-level failures.
"""
from __future__ import annotations


class PlannerError(Exception):
    """Base class for all planner failures."""


class LanguageServiceError(PlannerError):
    """The classification/summarization service was unreachable or returned
    something that is not a JSON object."""


class ClassificationFailure(PlannerError):
    """Intent classification could not produce a usable result."""


class DispatchFailure(PlannerError):
    """A broadcast could not be delivered."""


class ValidationFailure(PlannerError):
    """A precondition on the active draft did not hold (missing, empty, not ready)."""


class PersistenceFailure(PlannerError):
    """A collaborator failed to read or write persisted state."""
