from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.database import INT4_MAX
from storefront.errors import EmptyOrderError, OrderNotFoundError, ProductNotFoundError
from storefront.models.order import Order, OrderLineItem
from storefront.models.product import Product


async def list_orders(session: AsyncSession) -> list[Order]:
    result = await session.execute(
        select(Order).options(selectinload(Order.line_items)).order_by(Order.id)
    )
    return list(result.scalars().all())


async def get_order(session: AsyncSession, order_id: int) -> Order:
    if not 0 < order_id <= INT4_MAX:
        raise OrderNotFoundError(order_id)
    result = await session.execute(
        select(Order)
        .options(selectinload(Order.line_items))
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


async def create_order(
    session: AsyncSession,
    customer_name: str,
    line_items: Sequence[tuple[int, int]],
) -> Order:
    """Create an order from (product_id, quantity) pairs at current product prices."""
    if not line_items:
        raise EmptyOrderError()

    product_ids = {product_id for product_id, _ in line_items}
    result = await session.execute(select(Product).where(Product.id.in_(product_ids)))
    products = {product.id: product for product in result.scalars()}
    for product_id, _ in line_items:
        if product_id not in products:
            raise ProductNotFoundError(product_id)

    order = Order(
        customer_name=customer_name,
        line_items=[
            OrderLineItem(
                product_id=product_id,
                quantity=quantity,
                unit_price=products[product_id].price,
            )
            for product_id, quantity in line_items
        ],
    )
    session.add(order)
    await session.commit()

    # Reload to pick up server defaults
    return await get_order(session, order.id)
