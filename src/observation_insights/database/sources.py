"""
Observation sources.

The analytics service reads records through ObservationSource so the same
code runs against PostgreSQL, a JSON export or fixtures in tests.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from pydantic import ValidationError

from ..models.observation import ObservationRecord
from ..models.scope import FilterScope


logger = logging.getLogger(__name__)


class ObservationSource(ABC):
    """Read-only access to completed observations."""

    @abstractmethod
    async def fetch_observations(self, scope: FilterScope) -> List[ObservationRecord]:
        """
        Fetch the observations matching a scope.

        Implementations raise on transport or query failure; an empty result
        is a normal outcome, not an error.
        """
        pass


class InMemoryObservationSource(ObservationSource):
    """Serves records held in memory, filtered with FilterScope.matches."""

    def __init__(self, records: Iterable[ObservationRecord] = ()):
        self.records: List[ObservationRecord] = list(records)

    async def fetch_observations(self, scope: FilterScope) -> List[ObservationRecord]:
        matched = [record for record in self.records if scope.matches(record)]
        logger.debug(f"In-memory source matched {len(matched)} of {len(self.records)} records")
        return matched

    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, Any]]) -> "InMemoryObservationSource":
        """Build from raw rows; rows that fail validation are skipped with a warning."""
        records = []
        for index, row in enumerate(rows):
            try:
                records.append(ObservationRecord.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping invalid observation row {index}: {e.error_count()} validation errors")
        return cls(records)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "InMemoryObservationSource":
        """
        Load a JSON export: either a list of rows or an object with an
        `observations` list.
        """
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)

        rows = payload.get("observations", []) if isinstance(payload, dict) else payload
        if not isinstance(rows, list):
            raise ValueError(f"Expected a list of observations in {path}")

        source = cls.from_rows(rows)
        logger.info(f"Loaded {len(source.records)} observations from {path}")
        return source
