# File: crudgen/errors.py
"""
crudgen - Exception Hierarchy
===============================
Every failure the pipeline can report derives from ``GeneratorError``, which
carries a human-readable message plus a ``details`` mapping that ends up in
the generation report.

Only ``UnresolvedReferenceError`` is recovered from (by the route resolver,
which degrades the entity to a standalone resource).  Everything else stops
the run.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class GeneratorError(Exception):
    """Base exception for all crudgen errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SchemaError(GeneratorError):
    """The schema itself is malformed (duplicate names, bad identifiers, unknown types)."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        problems: Optional[List[str]] = None,
    ):
        super().__init__(message, details)
        self.problems = list(problems or [])


class TargetError(GeneratorError):
    """Unknown or incompatible framework / persistence backend pair."""

    def __init__(self, framework: str, backend: str, message: str):
        super().__init__(
            f"Invalid target {framework}/{backend}: {message}",
            {"framework": framework, "backend": backend},
        )
        self.framework = framework
        self.backend = backend


class InvalidAssociationError(GeneratorError):
    """An association declares an option combination that cannot be compiled."""

    def __init__(self, owner: str, association: str, message: str):
        super().__init__(
            f"Invalid association {owner}.{association}: {message}",
            {"entity": owner, "association": association},
        )
        self.owner = owner
        self.association = association


class UnresolvedReferenceError(GeneratorError):
    """An association points at an entity that is not part of this run."""

    def __init__(self, owner: str, association: str, target: str):
        super().__init__(
            f"{owner}.{association} references unknown entity '{target}'",
            {"entity": owner, "association": association, "target": target},
        )
        self.owner = owner
        self.association = association
        self.target = target


class ArtifactWriteError(GeneratorError):
    """Writing an artifact to disk failed."""

    def __init__(self, path: str, message: str):
        super().__init__(f"Cannot write to {path}: {message}", {"path": path})
        self.path = path


class HookError(GeneratorError):
    """A lifecycle hook raised; the run is aborted."""

    def __init__(self, hook: str, callback: str, message: str):
        super().__init__(
            f"Hook {hook} ({callback}) failed: {message}",
            {"hook": hook, "callback": callback},
        )
        self.hook = hook
        self.callback = callback


__all__: List[str] = [
    "GeneratorError",
    "SchemaError",
    "TargetError",
    "InvalidAssociationError",
    "UnresolvedReferenceError",
    "ArtifactWriteError",
    "HookError",
]
