from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated user as returned by the identity endpoint."""

    participant_id: int
    first_name: str = ""
    last_name: str = ""
    email: str | None = None

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or f"Utilisateur {self.participant_id}"
