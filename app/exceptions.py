"""
Domain errors for the fulfillment pipeline.

Each error carries the HTTP status and error code used by the exception
handler in app.main, so services raise plain exceptions and routers stay thin.
"""
from typing import Optional


class FulfillmentError(Exception):
    status_code = 400
    code = "FULFILLMENT_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class OrderNotFound(FulfillmentError):
    status_code = 404
    code = "ORDER_NOT_FOUND"


class CourierNotFound(FulfillmentError):
    status_code = 404
    code = "COURIER_NOT_FOUND"


class DeliveryPersonNotFound(FulfillmentError):
    status_code = 404
    code = "DELIVERY_PERSON_NOT_FOUND"


class InvalidCredentials(FulfillmentError):
    status_code = 401
    code = "INVALID_CREDENTIALS"


class AccountInactive(FulfillmentError):
    status_code = 403
    code = "ACCOUNT_INACTIVE"


class TrackingNotAvailable(FulfillmentError):
    """The order has no courier tracking id yet"""
    status_code = 404
    code = "TRACKING_NOT_AVAILABLE"


# ===== Courier vendor errors =====

class CourierError(FulfillmentError):
    status_code = 502
    code = "COURIER_ERROR"
    retryable = False


class VendorRejected(CourierError):
    """Vendor validated the request and refused it (bad address, unsupported zone)"""
    status_code = 422
    code = "COURIER_REJECTED"


class VendorUnavailable(CourierError):
    """Network failure, timeout or vendor 5xx; safe to retry"""
    status_code = 503
    code = "COURIER_UNAVAILABLE"
    retryable = True


class CourierAuthError(CourierError):
    """Courier credentials were refused; needs an operator"""
    code = "COURIER_AUTH_FAILED"


class TrackingNotFound(CourierError):
    status_code = 404
    code = "COURIER_TRACKING_NOT_FOUND"


class WebhookUnauthorized(CourierError):
    status_code = 401
    code = "WEBHOOK_UNAUTHORIZED"


# ===== Delivery OTP errors =====

class OtpError(FulfillmentError):
    code = "OTP_ERROR"


class NotInternalDelivery(OtpError):
    code = "NOT_INTERNAL_DELIVERY"


class OtpNotFound(OtpError):
    status_code = 404
    code = "OTP_NOT_FOUND"


class OtpMismatch(OtpError):
    code = "OTP_MISMATCH"


class OtpLocked(OtpError):
    status_code = 429
    code = "OTP_LOCKED"


class OtpAlreadyVerified(OtpError):
    status_code = 409
    code = "OTP_ALREADY_VERIFIED"


class OtpRequired(OtpError):
    code = "OTP_REQUIRED"


class OrderClosed(OtpError):
    """The order was delivered or cancelled by another path"""
    status_code = 409
    code = "ORDER_CLOSED"


class OrderNotAssigned(OtpError):
    """The order belongs to another delivery person"""
    status_code = 403
    code = "ORDER_NOT_ASSIGNED"


class PaymentGatewayError(FulfillmentError):
    status_code = 502
    code = "PAYMENT_GATEWAY_ERROR"


class ConcurrentUpdateConflict(FulfillmentError):
    """Compare-and-set on the order kept losing to concurrent writers"""
    status_code = 409
    code = "CONCURRENT_UPDATE_CONFLICT"
