from __future__ import annotations

from typing import Any, Dict

from supply_tracker.ui_strings import error_message


class AppError(Exception):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        fallback = error_message("unexpected_error", "Could not complete the operation.")
        return error_message(self.message_key, fallback)

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.user_message(),
            "request_id": request_id,
        }
        if self.payload:
            payload.update(self.payload)
        return payload


class UserActionError(AppError):
    default_code = "action_invalid"
    default_message_key = "action_invalid"
    default_http_status = 400
    default_critical = False


class ValidationError(UserActionError):
    default_code = "validation_error"
    default_message_key = "supply_input_invalid"
    default_http_status = 400
    default_critical = False


class NotFoundError(UserActionError):
    default_code = "not_found"
    default_message_key = "not_found"
    default_http_status = 404
    default_critical = False


class PurchaseRequestNotFoundError(NotFoundError):
    default_code = "purchase_request_not_found"
    default_message_key = "purchase_request_not_found"

    def __init__(self, request_id: str) -> None:
        self.request_id = str(request_id or "").strip()
        super().__init__(details=f"purchase request {self.request_id} is not mirrored")


class SupplyInputNotFoundError(NotFoundError):
    default_code = "supply_input_not_found"
    default_message_key = "supply_input_not_found"

    def __init__(self, cp_id: str) -> None:
        self.cp_id = str(cp_id or "").strip()
        super().__init__(details=f"supply input {self.cp_id} does not exist")


class OrderViewError(UserActionError):
    default_code = "view_invalid"
    default_message_key = "view_invalid"

    def __init__(self, slug: str) -> None:
        self.slug = str(slug or "")
        super().__init__(details=f"unknown order view: {self.slug}")


class BulkRequestError(UserActionError):
    default_code = "bulk_operation_invalid"
    default_message_key = "bulk_operation_invalid"


class BulkLimitError(BulkRequestError):
    default_code = "bulk_limit_exceeded"
    default_message_key = "bulk_limit_exceeded"

    def __init__(self, size: int, limit: int) -> None:
        self.size = int(size)
        self.limit = int(limit)
        super().__init__(
            details=f"{self.size} supply inputs exceed the bulk limit of {self.limit}",
            payload={"limit": self.limit},
        )


class SystemError(AppError):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True
