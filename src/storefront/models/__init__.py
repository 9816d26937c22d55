from storefront.models.order import Order, OrderLineItem
from storefront.models.product import Product

__all__ = ["Order", "OrderLineItem", "Product"]
