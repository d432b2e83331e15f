"""Custom exceptions for the Order Desk application."""

class OrderDeskError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class ValidationError(OrderDeskError):
    """Raised for malformed input: non-positive quantity, negative price, NaN."""
    def __init__(self, message, field=None, payload=None):
        if field:
            payload = dict(payload or ())
            payload['field'] = field
        super().__init__(message, 400, payload)
        self.field = field

class BusinessLogicError(OrderDeskError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(OrderDeskError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InvalidStatusTransitionError(BusinessLogicError):
    """Raised when an order cannot move from its current status to the requested one."""
    def __init__(self, current, requested):
        current_value = getattr(current, 'value', current)
        requested_value = getattr(requested, 'value', requested)
        message = f"Cannot change order status from '{current_value}' to '{requested_value}'"
        super().__init__(message, status_code=409, payload={
            'current_status': current_value,
            'requested_status': requested_value
        })
