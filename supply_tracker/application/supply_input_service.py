from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List

from supply_tracker.domain.models import PurchaseRequest
from supply_tracker.domain.supply_input import (
    BULK_OPERATIONS,
    BulkResults,
    BulkSupplyInputOperation,
    SupplyInput,
    SupplyInputResponse,
    SupplyInputWithContext,
    build_supply_input_context,
)
from supply_tracker.observability import observe_supply_api_call
from supply_tracker.ui_strings import error_message, success_message


LATENCY_MS: Dict[str, int] = {
    "fetch_purchase_request": 500,
    "create": 700,
    "update": 600,
    "fetch_all": 800,
    "bulk": 1000,
}


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class InMemorySupplyInputRepository:
    def __init__(self, items: Iterable[SupplyInput] | None = None) -> None:
        self._lock = RLock()
        self._items: Dict[str, SupplyInput] = {}
        self._sequence = 0
        for item in items or ():
            self.add(item)

    def next_cp_id(self) -> str:
        with self._lock:
            while True:
                self._sequence += 1
                candidate = f"CP-{self._sequence:03d}"
                if candidate not in self._items:
                    return candidate

    def add(self, supply_input: SupplyInput) -> SupplyInput:
        with self._lock:
            if not supply_input.cp_id or supply_input.cp_id in self._items:
                supply_input.cp_id = self.next_cp_id()
            self._items[supply_input.cp_id] = supply_input
            return supply_input

    def get(self, cp_id: str) -> SupplyInput | None:
        with self._lock:
            return self._items.get(cp_id)

    def replace(self, supply_input: SupplyInput) -> None:
        with self._lock:
            if supply_input.cp_id not in self._items:
                raise KeyError(supply_input.cp_id)
            self._items[supply_input.cp_id] = supply_input

    def delete(self, cp_id: str) -> bool:
        with self._lock:
            return self._items.pop(cp_id, None) is not None

    def list(self) -> List[SupplyInput]:
        with self._lock:
            return list(self._items.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class SupplyInputService:
    """Mock Supply Input backend with simulated network latency.

    Outcomes are reported through ``SupplyInputResponse`` and
    ``BulkResults``; none of the operations raise for business failures.
    """

    def __init__(
        self,
        repository: InMemorySupplyInputRepository | None = None,
        requests_provider: Callable[[], Iterable[PurchaseRequest]] | None = None,
        *,
        latency_enabled: bool = True,
        latency_scale: float = 1.0,
        sleep_fn: Callable[[float], None] = time.sleep,
        now_ms_fn: Callable[[], int] = _now_ms,
    ) -> None:
        self.repository = repository or InMemorySupplyInputRepository()
        self.requests_provider = requests_provider or (lambda: ())
        self.latency_enabled = latency_enabled
        self.latency_scale = max(0.0, float(latency_scale))
        self.sleep_fn = sleep_fn
        self.now_ms_fn = now_ms_fn
        self._logger = logging.getLogger("supply_tracker")

    def fetch_purchase_request_by_id(self, request_id: str) -> PurchaseRequest | None:
        started = time.perf_counter()
        self._simulate_latency("fetch_purchase_request")
        normalized = str(request_id or "").strip()
        found = next((item for item in self.requests_provider() if item.id == normalized), None)
        self._record("fetch_purchase_request", found is not None, started)
        return found

    def create(self, supply_input: SupplyInput) -> SupplyInputResponse:
        started = time.perf_counter()
        self._simulate_latency("create")
        response = self._create_record(supply_input)
        self._record("create", response.success, started)
        return response

    def update(self, cp_id: str, partial: Dict[str, Any]) -> SupplyInputResponse:
        started = time.perf_counter()
        self._simulate_latency("update")
        response = self._update_record(cp_id, partial)
        self._record("update", response.success, started)
        return response

    def fetch_all(self) -> List[SupplyInput]:
        started = time.perf_counter()
        self._simulate_latency("fetch_all")
        items = self.repository.list()
        self._record("fetch_all", True, started)
        return items

    def fetch_with_context(self, cp_id: str) -> SupplyInputWithContext | None:
        supply_input = self.repository.get(str(cp_id or "").strip())
        if supply_input is None:
            return None
        purchase_request = next(
            (item for item in self.requests_provider() if item.find_sku(supply_input.sku_id) is not None),
            None,
        )
        return build_supply_input_context(supply_input, purchase_request, now_ms=self.now_ms_fn())

    def bulk_operation(
        self,
        operation: str,
        supply_inputs: List[SupplyInput | Dict[str, Any]],
        batch_id: str,
    ) -> BulkSupplyInputOperation:
        started = time.perf_counter()
        self._simulate_latency("bulk")
        normalized_operation = str(operation or "").strip().lower()
        successful = 0
        errors: List[str] = []
        processed: List[SupplyInput] = []
        for index, item in enumerate(supply_inputs, start=1):
            partial = dict(item) if isinstance(item, dict) else item.to_partial_dict()
            cp_id = str(partial.get("cpId") or "").strip()
            label = cp_id or str(partial.get("agmId") or "").strip() or f"item {index}"
            if normalized_operation not in BULK_OPERATIONS:
                errors.append(f"{label}: {error_message('bulk_operation_invalid')}")
                continue
            if normalized_operation == "create":
                response = self._create_from_partial(partial)
            elif normalized_operation == "update":
                response = self._update_record(cp_id, partial)
            else:
                response = self._delete_record(cp_id)
            if response.success:
                successful += 1
                if response.data is not None:
                    processed.append(response.data)
            else:
                errors.append(f"{label}: {response.message}")

        results = BulkResults(successful=successful, failed=len(supply_inputs) - successful, errors=errors)
        self._logger.info(
            "supply_input_bulk_processed",
            extra={
                "batch_id": batch_id,
                "operation": normalized_operation,
                "successful": results.successful,
                "failed": results.failed,
            },
        )
        self._record("bulk", results.failed == 0, started)
        return BulkSupplyInputOperation(
            operation=normalized_operation,
            supply_inputs=processed,
            batch_id=str(batch_id or ""),
            processed_at=self.now_ms_fn(),
            results=results,
        )

    def _create_from_partial(self, partial: Dict[str, Any]) -> SupplyInputResponse:
        try:
            supply_input = SupplyInput.from_dict(partial)
        except ValueError as exc:
            return SupplyInputResponse.invalid(exc)
        return self._create_record(supply_input)

    def _create_record(self, supply_input: SupplyInput) -> SupplyInputResponse:
        missing = supply_input.missing_identity_fields()
        if missing:
            return SupplyInputResponse(
                success=False,
                message=error_message("supply_input_missing_fields"),
                errors=missing,
            )
        record = SupplyInput.from_dict(supply_input.to_dict())
        record.cp_id = None
        stored = self.repository.add(record)
        return SupplyInputResponse(success=True, message=success_message("supply_input_created"), data=stored)

    def _update_record(self, cp_id: str, partial: Dict[str, Any]) -> SupplyInputResponse:
        normalized = str(cp_id or "").strip()
        current = self.repository.get(normalized) if normalized else None
        if current is None:
            return SupplyInputResponse(success=False, message=error_message("supply_input_not_found"))
        try:
            merged = current.merged(partial)
        except ValueError as exc:
            return SupplyInputResponse.invalid(exc)
        merged.cp_id = current.cp_id
        self.repository.replace(merged)
        return SupplyInputResponse(success=True, message=success_message("supply_input_updated"), data=merged)

    def _delete_record(self, cp_id: str) -> SupplyInputResponse:
        normalized = str(cp_id or "").strip()
        current = self.repository.get(normalized) if normalized else None
        if current is None or not self.repository.delete(normalized):
            return SupplyInputResponse(success=False, message=error_message("supply_input_not_found"))
        return SupplyInputResponse(success=True, message=success_message("supply_input_deleted"), data=current)

    def _simulate_latency(self, operation: str) -> None:
        if not self.latency_enabled or self.latency_scale <= 0:
            return
        self.sleep_fn(LATENCY_MS[operation] * self.latency_scale / 1000.0)

    def _record(self, operation: str, succeeded: bool, started: float) -> None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        observe_supply_api_call(operation, "success" if succeeded else "failure", duration_ms)
