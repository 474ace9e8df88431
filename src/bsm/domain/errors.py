class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class InsufficientStockError(AppError):
    def __init__(self, available: int):
        super().__init__(f"Insufficient stock. Available: {available} units")
        self.available = available


class AuthorizationError(AppError):
    pass


class ImageHostError(AppError):
    """Image upload or deletion against the image host failed."""
