"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User/Authorization
  2xxx: Account/Balance
  3xxx: Catalog
  4xxx: Order
  5xxx: Payment/Payout
  6xxx: Dispute/Penalty
  7xxx: Review/Report
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


class AccountSuspendedError(AppError):
    def __init__(self, until: str | None = None) -> None:
        detail = f" until {until}" if until else ""
        super().__init__(1006, f"Account is suspended{detail}", 403)


class NotAuthorizedError(AppError):
    def __init__(self, detail: str = "Not authorized for this action", code: int = 1007) -> None:
        super().__init__(code, detail, 403)


class NotYourOrderError(NotAuthorizedError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} does not belong to you", 1008)


class NotYourDeliveryError(NotAuthorizedError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} is not assigned to you", 1009)


# --- 2xxx: Account ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required} kobo, available {available} kobo",
            422,
        )


class AccountNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Account not found for user {user_id}", 404)


class BelowMinimumWithdrawalError(AppError):
    def __init__(self, minimum: int) -> None:
        super().__init__(2003, f"Minimum withdrawal is {minimum} kobo", 422)


class WithdrawalNotFoundError(AppError):
    def __init__(self, reference: str) -> None:
        super().__init__(2004, f"Withdrawal not found: {reference}", 404)


class WithdrawalKeyConflictError(AppError):
    def __init__(self, key: str) -> None:
        super().__init__(
            2005, f"Idempotency key {key} was already used for a different withdrawal", 409
        )


class WithdrawalInProgressError(AppError):
    def __init__(self, reference: str) -> None:
        super().__init__(2006, f"Withdrawal {reference} is already being processed", 409)


# --- 3xxx: Catalog ---

class ProductNotFoundError(AppError):
    def __init__(self, product_id: str) -> None:
        super().__init__(3001, f"Product not found: {product_id}", 404)


class ProductUnavailableError(AppError):
    def __init__(self, product_id: str) -> None:
        super().__init__(3002, f"Product is not available: {product_id}", 422)


class OutOfStockError(AppError):
    def __init__(self, requested: int, in_stock: int) -> None:
        super().__init__(
            3003, f"Insufficient stock: requested {requested}, in stock {in_stock}", 422
        )


class SelfPurchaseError(AppError):
    def __init__(self) -> None:
        super().__init__(3004, "You cannot buy your own product", 422)


# --- 4xxx: Order ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4001, f"Order not found: {order_id}", 404)


class AlreadyAssignedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4002, f"Order {order_id} already has a rider", 409)


class OrderNotPendingError(AppError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(4003, f"Order {order_id} is {status}, not PENDING", 409)


class OrderNotPaidError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Order {order_id} has not been paid", 422)


class InvalidStatusTransitionError(AppError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(4005, f"Cannot move order from {current} to {requested}", 422)


class NotDeliveredError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4006, f"Order {order_id} has not been delivered yet", 422)


class AlreadyReleasedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4007, f"Payment for order {order_id} was already released", 409)


class OrderUnderDisputeError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4008, f"Order {order_id} has an open dispute", 409)


# --- 5xxx: Payment/Payout ---

class PaymentAlreadyProcessedError(AppError):
    def __init__(self, reference: str) -> None:
        super().__init__(5001, f"Payment {reference} has already been processed", 409)


class PaymentVerificationFailedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5002, f"Payment verification failed: {detail}", 422)


class PaymentGatewayError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5003, f"Payment gateway error: {detail}", 502)


class PayoutFailedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5004, f"Payout failed: {detail}", 502)


# --- 6xxx: Dispute/Penalty ---

class DisputeNotFoundError(AppError):
    def __init__(self, dispute_id: str) -> None:
        super().__init__(6001, f"Dispute not found: {dispute_id}", 404)


class AlreadyDisputedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(6002, f"A dispute already exists for order {order_id}", 409)


class DisputeNotEligibleError(AppError):
    def __init__(self, status: str) -> None:
        super().__init__(
            6003, f"Only delivered or completed orders can be disputed (status={status})", 422
        )


class DisputeAlreadyResolvedError(AppError):
    def __init__(self, dispute_id: str) -> None:
        super().__init__(6004, f"Dispute {dispute_id} is already resolved", 409)


class InvalidRefundAmountError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6005, f"Invalid refund amount: {detail}", 422)


class RefundAfterReleaseError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(
            6006, f"Escrow for order {order_id} was already released; refund refused", 409
        )


class InvalidResolutionStatusError(AppError):
    def __init__(self, status: str) -> None:
        super().__init__(6007, f"Not a resolution status: {status}", 422)


class DuplicatePenaltyError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(6008, f"Penalty for this cause was already issued to {user_id}", 409)


# --- 7xxx: Review/Report ---

class ReviewNotAllowedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(7001, f"Review not allowed: {detail}", 422)


class AlreadyReviewedError(AppError):
    def __init__(self, order_id: str, review_type: str) -> None:
        super().__init__(
            7002, f"Order {order_id} already has a {review_type.lower()} review", 409
        )


class ReportNotFoundError(AppError):
    def __init__(self, report_id: str) -> None:
        super().__init__(7003, f"Report not found: {report_id}", 404)


class InvalidReportError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(7004, f"Invalid report: {detail}", 422)


class ReportAlreadyResolvedError(AppError):
    def __init__(self, report_id: str) -> None:
        super().__init__(7005, f"Report {report_id} is already closed", 409)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9001, detail, 500)


class ResourceNotFoundError(AppError):
    def __init__(self, kind: str, resource_id: object) -> None:
        super().__init__(9002, f"{kind} not found: {resource_id}", 404)
