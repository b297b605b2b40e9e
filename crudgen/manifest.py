# File: crudgen/manifest.py
"""
crudgen - Registration Manifest
=================================
Frameworks such as Express and FastAPI need a central file that wires every
generated router into the application.  Rather than patching that file with
string edits after each entity, the controller stage records one
``Registration`` per entity here and the routes stage renders the central
file once, from the complete manifest.

The manifest is append-only and rejects a second registration for the same
entity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.manifest")


@dataclass(frozen=True, slots=True)
class Registration:
    """
    How one entity's router is wired into the application.

    ``module`` is the import path of the router relative to the central
    registration file; ``mount`` is the URL prefix it is served under.
    """

    entity: str
    resource: str
    module: str
    symbol: str
    mount: str


class RegistrationManifest:
    """Ordered, append-only collection of registrations for one run."""

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: Dict[str, Registration] = {}

    def add(self, registration: Registration) -> None:
        if registration.entity in self._entries:
            raise ValueError(f"Entity '{registration.entity}' is already registered")
        self._entries[registration.entity] = registration
        logger.debug(
            "Registered %s -> %s at %s",
            registration.entity,
            registration.module,
            registration.mount,
        )

    def get(self, entity: str) -> Optional[Registration]:
        return self._entries.get(entity)

    @property
    def registrations(self) -> List[Registration]:
        return list(self._entries.values())

    def __iter__(self) -> Iterator[Registration]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entity: object) -> bool:
        return entity in self._entries

    def __repr__(self) -> str:
        return f"<RegistrationManifest {len(self)} registration(s)>"


__all__: List[str] = ["Registration", "RegistrationManifest"]

logger.debug("crudgen.manifest loaded.")
