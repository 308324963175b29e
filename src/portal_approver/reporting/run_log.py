"""
Run Log - Append-only record of definitive outcomes.

Each record is written and flushed as it is appended, so a run that dies
half way leaves a valid partial CSV behind.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import csv
import json
import logging

from portal_approver.engine.models import Outcome
from portal_approver.exceptions import DuplicateOutcomeError

logger = logging.getLogger(__name__)

CSV_HEADER = ["time", "request_id", "outcome", "identity", "note"]


@dataclass(frozen=True)
class RunRecord:
    """
    One definitive resolution.

    Attributes:
        timestamp: When the outcome was recorded
        request_id: The identifier
        outcome: Final outcome
        identity: Label of the identity that settled it ("" when none did)
        note: Free-form detail
    """
    timestamp: datetime
    request_id: str
    outcome: Outcome
    identity: str = ""
    note: str = ""

    def to_row(self) -> List[str]:
        return [
            self.timestamp.isoformat(timespec="seconds"),
            self.request_id,
            self.outcome.value,
            self.identity,
            self.note,
        ]

    def to_dict(self) -> Dict[str, Any]:
        return dict(zip(CSV_HEADER, self.to_row()))


@dataclass
class RunLog:
    """
    Append-only outcome log, optionally mirrored to a CSV file.

    Example:
        >>> log = RunLog(Path("logs/run_20240101.csv"))
        >>> log.append("1001", Outcome.APPROVED, identity="Doe, Jane")
        >>> log.summary()
        {'approved': 1, 'approved_two_phase': 0, 'not_found': 0, 'found_but_action_failed': 0}
    """
    path: Optional[Path] = None
    _records: List[RunRecord] = field(default_factory=list, init=False, repr=False)
    _index: Dict[str, RunRecord] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.path is not None:
            self.path = Path(self.path)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", newline="", encoding="utf-8") as f:
                csv.writer(f).writerow(CSV_HEADER)

    @property
    def records(self) -> List[RunRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._index

    def record_for(self, request_id: str) -> Optional[RunRecord]:
        return self._index.get(request_id)

    def append(
        self,
        request_id: str,
        outcome: Outcome,
        identity: str = "",
        note: str = "",
    ) -> RunRecord:
        """
        Record the definitive outcome for an identifier.

        Raises:
            DuplicateOutcomeError: If the identifier already has a record
        """
        existing = self._index.get(request_id)
        if existing is not None:
            raise DuplicateOutcomeError(
                f"{request_id} already recorded as {existing.outcome.value}",
                request_id=request_id,
                existing=existing.outcome.value,
            )

        record = RunRecord(
            timestamp=datetime.now(),
            request_id=request_id,
            outcome=outcome,
            identity=identity,
            note=note,
        )
        self._records.append(record)
        self._index[request_id] = record

        if self.path is not None:
            with open(self.path, "a", newline="", encoding="utf-8") as f:
                csv.writer(f).writerow(record.to_row())
                f.flush()

        logger.info(f"{request_id}: {outcome.value}" + (f" [{identity}]" if identity else ""))
        return record

    def summary(self) -> Dict[str, int]:
        """Record count per outcome label."""
        counts = {outcome.value: 0 for outcome in Outcome}
        for record in self._records:
            counts[record.outcome.value] += 1
        return counts

    def export_json(self, path: Path | str) -> None:
        """Write the records and summary as JSON."""
        path = Path(path)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "summary": self.summary(),
                    "records": [r.to_dict() for r in self._records],
                },
                f,
                indent=2,
            )
