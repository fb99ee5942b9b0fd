"""Error types shared by the RPC endpoints and the Payme merchant webhook.

Two families live here:

* ``ServiceError`` for the client-facing RPCs (payment creation, history,
  invites). The code is a stable string the mobile app switches on.
* ``PaymeRPCError`` for the gateway callback. The code is the numeric
  JSON-RPC style code Payme expects in ``error.code``.
"""
from enum import Enum, IntEnum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    INVALID_ARGUMENT = "invalid-argument"
    NOT_FOUND = "not-found"
    PERMISSION_DENIED = "permission-denied"
    UNAUTHENTICATED = "unauthenticated"
    FAILED_PRECONDITION = "failed-precondition"
    RESOURCE_EXHAUSTED = "resource-exhausted"
    INTERNAL = "internal"


HTTP_STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.FAILED_PRECONDITION: 409,
    ErrorCode.RESOURCE_EXHAUSTED: 429,
    ErrorCode.INTERNAL: 500,
}


class ServiceError(Exception):
    """Typed error surfaced to RPC callers.

    Attributes:
        code: ErrorCode enum
        message: human readable message, safe to show to the client
        details: optional structured data (e.g. {'field': 'amount'})
    """

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message or code.value
        self.details = details or {}
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_CODE[self.code]

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


class PaymeErrorCode(IntEnum):
    PAYMENT_NOT_FOUND = -31050
    ALREADY_PROCESSED = -31051
    PAYMENT_BUSY = -31099
    INVALID_AMOUNT = -31001
    TRANSACTION_NOT_FOUND = -31003
    INVALID_STATE = -31008
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INTERNAL_ERROR = -32400
    UNAUTHORIZED = -32504


DEFAULT_PAYME_MESSAGES: Dict[PaymeErrorCode, str] = {
    PaymeErrorCode.PAYMENT_NOT_FOUND: "Payment not found",
    PaymeErrorCode.ALREADY_PROCESSED: "Payment already processed",
    PaymeErrorCode.PAYMENT_BUSY: "Payment is awaiting another transaction",
    PaymeErrorCode.INVALID_AMOUNT: "Invalid amount",
    PaymeErrorCode.TRANSACTION_NOT_FOUND: "Transaction not found",
    PaymeErrorCode.INVALID_STATE: "Invalid transaction state",
    PaymeErrorCode.INVALID_REQUEST: "Invalid request",
    PaymeErrorCode.METHOD_NOT_FOUND: "Method not found",
    PaymeErrorCode.INTERNAL_ERROR: "Internal error",
    PaymeErrorCode.UNAUTHORIZED: "Unauthorized",
}


class PaymeRPCError(Exception):
    def __init__(self, code: PaymeErrorCode, message: Optional[str] = None, data: Optional[str] = None):
        self.code = code
        self.message = message or DEFAULT_PAYME_MESSAGES[code]
        self.data = data
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error
