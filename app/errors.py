class OrderServiceError(Exception):
    """Base class for errors raised by the order use cases."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(OrderServiceError):
    """Request is well-formed but breaks a business rule (e.g. an order without items)."""

    status_code = 400


class InvalidTransitionError(ValidationError):
    def __init__(self, current, requested):
        super().__init__(f"Cannot change order status from {current} to {requested}")
        self.current = current
        self.requested = requested


class NotFoundError(OrderServiceError):
    status_code = 404

    def __init__(self, entity, entity_id=None):
        if entity_id is None:
            message = f"{entity} not found"
        else:
            message = f"{entity} with ID {entity_id} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class IdentifierConflictError(OrderServiceError):
    """Invoice number or masked order ID kept colliding after every save attempt."""

    status_code = 500
