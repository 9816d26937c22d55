import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.product import Product

log = structlog.get_logger()

SEED_PRODUCTS: list[dict] = [
    {"name": "Espresso Beans", "description": "Dark roast, 1 kg bag", "price": 18.50},
    {"name": "Filter Papers", "description": "Pack of 100", "price": 4.25},
    {"name": "Pour-over Kettle", "description": "Gooseneck, 1 litre", "price": 39.00},
    {"name": "Burr Grinder", "description": "Hand grinder, steel burrs", "price": 64.90},
    {"name": "Ceramic Mug", "description": "350 ml", "price": 9.75},
]


async def seed_store(session: AsyncSession) -> int:
    """Insert the fixed product list if the Product table is empty."""
    count = await session.scalar(select(func.count()).select_from(Product))
    if count:
        return 0

    session.add_all(Product(**row) for row in SEED_PRODUCTS)
    await session.commit()
    log.info("store_seeded", products=len(SEED_PRODUCTS))
    return len(SEED_PRODUCTS)
