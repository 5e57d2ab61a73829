"""In-memory store of completed flow results."""

import threading
from collections import OrderedDict

from pydantic import BaseModel, Field

from insight_flow.contracts.payloads import utc_now_iso


class FlowResult(BaseModel):
    """What the terminal stage records for a finished flow."""

    correlation_id: str
    original_message: str
    response: str
    timestamp: str
    completed_at: str = Field(default_factory=utc_now_iso)
    has_error: bool = False
    context_count: int = 0


class FlowResultStore:
    """Bounded store keyed by correlation id; oldest results evicted first."""

    def __init__(self, max_results: int = 500):
        if max_results <= 0:
            raise ValueError("max_results must be > 0")
        self._results: OrderedDict[str, FlowResult] = OrderedDict()
        self._max_results = max_results
        self._lock = threading.Lock()

    def record(self, result: FlowResult) -> None:
        with self._lock:
            self._results[result.correlation_id] = result
            self._results.move_to_end(result.correlation_id)
            while len(self._results) > self._max_results:
                self._results.popitem(last=False)

    def get(self, correlation_id: str) -> FlowResult | None:
        with self._lock:
            result = self._results.get(correlation_id)
            return result.model_copy() if result else None

    def has_result(self, correlation_id: str) -> bool:
        with self._lock:
            return correlation_id in self._results

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._results)
