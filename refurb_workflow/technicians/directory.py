from abc import ABC, abstractmethod
from collections.abc import Mapping


class BaseTechnicianDirectory(ABC):
    """Contract for technician identity lookups."""

    @abstractmethod
    def find_name(self, technician_id: str) -> str | None:
        """Return the technician's display name, or None if the id is unknown."""


class StaticTechnicianDirectory(BaseTechnicianDirectory):
    """Directory backed by a fixed id -> name mapping."""

    def __init__(self, technicians: Mapping[str, str]) -> None:
        self._technicians = dict(technicians)

    def find_name(self, technician_id: str) -> str | None:
        return self._technicians.get(technician_id)
