from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class UpstreamSource(ABC):
    """A job-posting aggregator organised as saved search filters."""

    @abstractmethod
    def list_filters(self) -> list[dict[str, Any]]:
        """Filters as ``{"id": ..., "name": ...}`` mappings; ``[]`` on failure."""

    @abstractmethod
    def list_postings(self, filter_id: Any) -> list[dict[str, Any]]:
        """Raw postings for one filter; ``[]`` on failure."""
