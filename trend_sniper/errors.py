"""
Swap error taxonomy with per-kind retry policy
"""

from enum import Enum


class SwapErrorKind(Enum):
    """Failure kinds raised by the swap executor"""
    INPUT_ACCOUNT_NOT_FOUND = "input_account_not_found"
    PRIORITY_FEE_FAILED = "priority_fee_failed"
    ROUTE_COMPUTE_FAILED = "route_compute_failed"
    OUTPUT_AMOUNT_TOO_LOW = "output_amount_too_low"
    TRANSACTION_FAILED = "transaction_failed"
    REMOTE_UNAVAILABLE = "remote_unavailable"

    @property
    def retryable(self) -> bool:
        """Whether another swap attempt can succeed after this failure"""
        return self not in _TERMINAL_KINDS


_TERMINAL_KINDS = frozenset({
    SwapErrorKind.INPUT_ACCOUNT_NOT_FOUND,
    SwapErrorKind.ROUTE_COMPUTE_FAILED,
    SwapErrorKind.OUTPUT_AMOUNT_TOO_LOW,
})


class SwapError(Exception):
    """Base class for all swap failures"""
    kind = SwapErrorKind.TRANSACTION_FAILED
    default_message = "Swap failed"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class InputAccountNotFound(SwapError):
    kind = SwapErrorKind.INPUT_ACCOUNT_NOT_FOUND
    default_message = "Do not have input token account"


class PriorityFeeFetchFailed(SwapError):
    kind = SwapErrorKind.PRIORITY_FEE_FAILED
    default_message = "Get priority fee failed"


class RouteComputeFailed(SwapError):
    kind = SwapErrorKind.ROUTE_COMPUTE_FAILED
    default_message = "Compute swap failed"


class OutputAmountTooLow(SwapError):
    kind = SwapErrorKind.OUTPUT_AMOUNT_TOO_LOW
    default_message = "Output amount too low"


class TransactionFailed(SwapError):
    kind = SwapErrorKind.TRANSACTION_FAILED
    default_message = "Transaction failed"


class RemoteUnavailable(SwapError):
    """Network fault, non-2xx response or JSON-RPC error"""
    kind = SwapErrorKind.REMOTE_UNAVAILABLE
    default_message = "Remote service unavailable"
