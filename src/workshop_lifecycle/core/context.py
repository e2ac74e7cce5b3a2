"""Actor context passed into every use case.

Authentication happens outside the core; by the time a request reaches a
service the caller is reduced to a role and a subject id.
"""

from __future__ import annotations

from dataclasses import dataclass

from .enums import ActorRole


@dataclass(frozen=True)
class ActorContext:
    role: ActorRole
    subject_id: str

    @property
    def is_staff(self) -> bool:
        return self.role in (ActorRole.ADMIN, ActorRole.EMPLOYEE)


SYSTEM_ACTOR = ActorContext(role=ActorRole.SYSTEM, subject_id="system")
