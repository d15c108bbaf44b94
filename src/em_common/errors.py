"""Error taxonomy shared by every bounded context.

Each failure kind carries a stable numeric code and an HTTP status so the
FastAPI exception handler can render the unified response envelope.

Error code ranges:
  1xxx: Input / Auth / User
  3xxx: Listing
  4xxx: Order
  5xxx: Delivery content
  6xxx: Payment gateway
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


# --- Taxonomy roots ---

class InvalidInputError(AppError):
    def __init__(self, message: str, code: int = 1001) -> None:
        super().__init__(code, message, 400)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(1101, message, 401)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(1102, message, 403)


class NotFoundError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 404)


class StateConflictError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(4009, message, 409)


class UnavailableError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(3002, message, 409)


class GatewayVerificationFailedError(AppError):
    def __init__(self, gateway: str, detail: str) -> None:
        super().__init__(6001, f"{gateway}: {detail}", 400)


# --- 1xxx: Auth/User ---

class UsernameExistsError(InvalidInputError):
    def __init__(self) -> None:
        super().__init__("Username already exists", code=1002)


class EmailExistsError(InvalidInputError):
    def __init__(self) -> None:
        super().__init__("Email already exists", code=1003)


class InvalidCredentialsError(UnauthorizedError):
    def __init__(self) -> None:
        super().__init__("Invalid username or password")


class InvalidRefreshTokenError(UnauthorizedError):
    def __init__(self) -> None:
        super().__init__("Refresh token is invalid or expired")


class UserBannedError(ForbiddenError):
    def __init__(self) -> None:
        super().__init__("Account is banned")


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1004, f"User not found: {user_id}")


# --- 3xxx: Listing ---

class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3001, f"Listing not found: {listing_id}")


class ListingUnavailableError(UnavailableError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(f"Listing is not available for purchase: {listing_id}")


# --- 4xxx: Order ---

class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Order not found: {order_id}")


class InvalidTransitionError(StateConflictError):
    def __init__(self, order_id: str, status: str, target: str) -> None:
        super().__init__(f"Order {order_id} in status {status} cannot move to {target}")
        self.order_id = order_id
        self.status = status
        self.target = target


class SelfPurchaseError(InvalidInputError):
    def __init__(self) -> None:
        super().__init__("Cannot buy your own listing", code=4003)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
