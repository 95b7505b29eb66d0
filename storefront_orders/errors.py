"""
errors.py — Error Taxonomy of the Checkout Pipeline

Each failure the pipeline can report carries the HTTP status the API answers
with and the Arabic message shown to the customer. The two bookkeeping errors
at the bottom are raised after the order exists and are only ever logged.
"""

GENERIC_ERROR_MESSAGE = "حدث خطأ في معالجة الطلب"


class OrderPipelineError(Exception):
    """Base class for every failure of a checkout attempt."""

    status_code = 500
    default_message = GENERIC_ERROR_MESSAGE
    # Terminal PipelineState, set by OrderPipeline when the attempt aborts.
    state = None

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(OrderPipelineError):
    """A required field is missing, empty or malformed. User-fixable."""
    status_code = 400
    default_message = "بيانات الطلب غير صالحة"


class CatalogUnavailable(OrderPipelineError):
    """The stock snapshot could not be read from the catalog."""
    status_code = 500
    default_message = "تعذر التحقق من توفر المنتجات، حاول مرة أخرى"


class ProductNotFound(OrderPipelineError):
    status_code = 400

    def __init__(self, product_id: str, product_name: str):
        self.product_id = product_id
        self.product_name = product_name
        super().__init__(f'المنتج "{product_name}" غير موجود')


class OutOfStock(OrderPipelineError):
    status_code = 400

    def __init__(self, product_id: str, product_name: str, available: int):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        super().__init__(f'الكمية المطلوبة من "{product_name}" غير متوفرة. المتاح: {available}')


class OrderPersistenceFailed(OrderPipelineError):
    """The order header could not be written. Nothing was persisted."""
    status_code = 500
    default_message = "حدث خطأ أثناء إنشاء الطلب"


class OrderItemsPersistenceFailed(OrderPipelineError):
    """The line items could not be written. The header was deleted again."""
    status_code = 500
    default_message = "حدث خطأ أثناء إضافة المنتجات"


class StockReconciliationFailed(OrderPipelineError):
    """Stock decrement failed after the order was created. Logged only."""


class CouponAccountingFailed(OrderPipelineError):
    """Coupon usage increment failed after the order was created. Logged only."""
