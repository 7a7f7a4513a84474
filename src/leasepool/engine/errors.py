"""LeasePool engine errors."""


class LeasePoolError(Exception):
    """Base error for LeasePool operations."""

    def __init__(self, message: str, code: str = "LEASEPOOL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class StoreUnavailable(LeasePoolError):
    """Transient store failure (connection loss, timeout)."""

    def __init__(self, operation: str, reason: str = ""):
        message = f"Store unavailable during {operation}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, "STORE_UNAVAILABLE")
        self.operation = operation
        self.reason = reason


class ConfigurationError(LeasePoolError):
    """Startup configuration is missing or unusable."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")


class ItemNotFound(LeasePoolError):
    """Item does not exist."""

    def __init__(self, item_id: str):
        super().__init__(f"Item not found: {item_id}", "ITEM_NOT_FOUND")
        self.item_id = item_id


class HandlerError(LeasePoolError):
    """Item handler rejected or failed on an item."""

    def __init__(self, item_id: str, reason: str):
        super().__init__(f"Handler failed on item {item_id}: {reason}", "HANDLER_ERROR")
        self.item_id = item_id
        self.reason = reason
