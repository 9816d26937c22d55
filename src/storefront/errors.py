class StorefrontError(Exception):
    """Base exception for all Storefront errors."""


class ConfigurationError(StorefrontError):
    """Raised at build time when a pipeline or its settings are unusable."""


class LocaleParseError(StorefrontError):
    def __init__(self, value: str, reason: str = "not a valid locale tag") -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid culture '{value}': {reason}")


class StageFailure(StorefrontError):
    def __init__(self, stage: str, error: BaseException) -> None:
        self.stage = stage
        self.error = error
        super().__init__(f"Stage '{stage}' failed: {type(error).__name__}: {error}")


class ContinuationMisuseError(StorefrontError):
    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(f"Stage '{stage}' invoked its continuation more than once")


class PipelineCancelledError(StorefrontError):
    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(f"Request cancelled before stage '{stage}'")


class ProductNotFoundError(StorefrontError):
    def __init__(self, product_id: int) -> None:
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class OrderNotFoundError(StorefrontError):
    def __init__(self, order_id: int) -> None:
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class EmptyOrderError(StorefrontError):
    def __init__(self) -> None:
        super().__init__("An order needs at least one line item")


class ProductInUseError(StorefrontError):
    def __init__(self, product_id: int) -> None:
        self.product_id = product_id
        super().__init__(f"Product {product_id} is referenced by existing orders")
