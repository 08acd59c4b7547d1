from typing import List
from collections import deque

from kimten.domain.models import InputValidationError, TurnRecord

MEMORY_LIMIT = 10


class ShortTermMemory:
    """Bounded FIFO conversation log owned by a single Kimten instance"""

    def __init__(self, limit: int = MEMORY_LIMIT):
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise InputValidationError("Kimten memory limit must be a positive integer.")
        self.limit = limit
        self._records: deque = deque()

    def add(self, record: TurnRecord):
        """Append a record, evicting the oldest ones beyond the limit"""

        self._records.append(record)
        while len(self._records) > self.limit:
            self._records.popleft()

    def list(self) -> List[TurnRecord]:
        """Snapshot of the stored records, oldest first"""

        return [
            record if isinstance(record.content, str) else record.model_copy(deep=True)
            for record in self._records
        ]

    def clear(self):
        """Forget everything"""

        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
