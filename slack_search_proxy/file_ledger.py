"""Per-user question counts kept as one CSV file in a content store."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .errors import PersistenceError, RevisionConflictError
from .models import Identity, LedgerRow
from .storage import ContentStore

logger = logging.getLogger(__name__)

HEADER = ("user_name", "team_name", "user_id", "team_id", "questions")
# First-line markers that identify a header row. Fragile: a data row whose
# names contain either literal is dropped as well.
HEADER_MARKERS = ("user_name", "team_name")


def _parse_count(value: str) -> int:
    try:
        return max(0, int(value))
    except ValueError:
        return 0


@dataclass(slots=True)
class UsageTable:
    """Parsed ledger contents plus the revision tag they were read at."""

    rows: list[LedgerRow] = field(default_factory=list)
    revision: Optional[str] = None

    @classmethod
    def parse(cls, content: str, revision: Optional[str] = None) -> "UsageTable":
        lines = content.strip().splitlines()
        if lines and any(marker in lines[0] for marker in HEADER_MARKERS):
            lines = lines[1:]

        rows: dict[str, LedgerRow] = {}
        for values in csv.reader(line for line in lines if line.strip()):
            values = [value.strip() for value in values]
            if len(values) < len(HEADER):
                logger.warning("Skipping malformed usage row with %s column(s)", len(values))
                continue
            row = LedgerRow(
                user_name=values[0],
                team_name=values[1],
                user_id=values[2],
                team_id=values[3],
                questions=_parse_count(values[4]),
            )
            rows[row.key] = row
        return cls(rows=list(rows.values()), revision=revision)

    def find(self, identity: Identity) -> Optional[LedgerRow]:
        for row in self.rows:
            if row.team_id == identity.team_id and row.user_id == identity.user_id:
                return row
        return None

    def increment(self, identity: Identity) -> LedgerRow:
        row = self.find(identity)
        if row is None:
            row = LedgerRow(
                user_name=identity.user_name,
                team_name=identity.team_name,
                user_id=identity.user_id,
                team_id=identity.team_id,
            )
            self.rows.append(row)
        row.questions += 1
        return row

    def sorted_rows(self) -> list[LedgerRow]:
        return sorted(self.rows, key=lambda row: row.questions, reverse=True)

    def render(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(HEADER)
        for row in self.sorted_rows():
            writer.writerow([row.user_name, row.team_name, row.user_id, row.team_id, row.questions])
        return buffer.getvalue().rstrip("\n")


class FileUsageLedger:
    """Read-modify-write counter table guarded by the store's revision tag.

    Writes are optimistic: ``save`` sends the revision the table was loaded at
    and the store refuses it if someone else committed in between. Callers
    choose whether to retry on conflict via ``max_attempts``; the default of one
    attempt accepts a lost increment under a race.
    """

    def __init__(
        self,
        store: Optional[ContentStore],
        path: str = "usage_stats.csv",
        *,
        max_attempts: int = 1,
    ) -> None:
        self.store = store
        self.path = path
        self.max_attempts = max(1, max_attempts)

    @property
    def enabled(self) -> bool:
        return self.store is not None

    async def load(self) -> UsageTable:
        if self.store is None:
            return UsageTable()
        current = await self.store.read(self.path)
        if current is None:
            return UsageTable()
        return UsageTable.parse(current.content, current.revision)

    async def save(self, table: UsageTable) -> str:
        if self.store is None:
            raise PersistenceError("usage file store is not configured")
        message = f"Update usage stats - {datetime.now(timezone.utc).isoformat()}"
        revision = await self.store.write(self.path, table.render(), table.revision, message)
        table.revision = revision
        return revision

    async def record_question(self, identity: Identity, max_attempts: Optional[int] = None) -> bool:
        """Count one question for ``identity``; returns whether the write landed."""

        if self.store is None:
            logger.debug("Usage file store not configured, skipping question tracking")
            return False

        attempts = max(1, max_attempts or self.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                table = await self.load()
                table.increment(identity)
                await self.save(table)
            except RevisionConflictError as exc:
                if attempt < attempts:
                    logger.info("Usage file changed underneath us, retrying (%s/%s)", attempt, attempts)
                    continue
                logger.warning("Dropped question for %s after revision conflict: %s", identity.key, exc)
                return False
            except PersistenceError as exc:
                logger.error("Error tracking question for %s: %s", identity.key, exc)
                return False
            logger.info("Usage stats updated for %s", identity.key)
            return True
        return False


__all__ = ["FileUsageLedger", "UsageTable", "HEADER", "HEADER_MARKERS"]
