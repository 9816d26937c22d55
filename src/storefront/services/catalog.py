from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import INT4_MAX
from storefront.errors import ProductInUseError, ProductNotFoundError
from storefront.models.order import OrderLineItem
from storefront.models.product import Product


async def list_products(session: AsyncSession) -> list[Product]:
    result = await session.execute(select(Product).order_by(Product.id))
    return list(result.scalars().all())


async def get_product(session: AsyncSession, product_id: int) -> Product:
    if not 0 < product_id <= INT4_MAX:
        raise ProductNotFoundError(product_id)
    product = await session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


async def create_product(
    session: AsyncSession,
    name: str,
    price: float,
    description: str = "",
) -> Product:
    product = Product(name=name, description=description, price=price)
    session.add(product)
    await session.commit()
    return product


async def update_product(
    session: AsyncSession,
    product_id: int,
    name: str,
    price: float,
    description: str = "",
) -> Product:
    product = await get_product(session, product_id)
    product.name = name
    product.description = description
    product.price = price
    await session.commit()
    return product


async def delete_product(session: AsyncSession, product_id: int) -> None:
    product = await get_product(session, product_id)
    in_use = await session.scalar(
        select(exists().where(OrderLineItem.product_id == product_id))
    )
    if in_use:
        raise ProductInUseError(product_id)
    await session.delete(product)
    await session.commit()
