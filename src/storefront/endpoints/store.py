import functools
from typing import TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.errors import (
    EmptyOrderError,
    OrderNotFoundError,
    ProductInUseError,
    ProductNotFoundError,
    StorefrontError,
)
from storefront.pipeline.context import RequestContext, ResponseDescriptor
from storefront.pipeline.executor import TerminalHandler
from storefront.pipeline.routing import Router
from storefront.schemas.order import CreateOrderBody, OrderResponse
from storefront.schemas.product import ProductBody, ProductResponse
from storefront.services import catalog, orders

ModelT = TypeVar("ModelT", bound=BaseModel)

_ERROR_STATUS: dict[type[StorefrontError], int] = {
    ProductNotFoundError: 404,
    OrderNotFoundError: 404,
    ProductInUseError: 409,
    EmptyOrderError: 422,
}


class InvalidBody(Exception):
    def __init__(self, error: ValidationError) -> None:
        self.error = error
        super().__init__(str(error))


def _parse_body(ctx: RequestContext, model: type[ModelT]) -> ModelT:
    try:
        return model.model_validate_json(ctx.request.body or b"{}")
    except ValidationError as e:
        raise InvalidBody(e) from e


def _json(model: BaseModel, status_code: int = 200) -> ResponseDescriptor:
    return ResponseDescriptor(status_code=status_code, body=model.model_dump(mode="json"))


def _domain_errors(handler: TerminalHandler) -> TerminalHandler:
    """Turn store errors and invalid bodies into client responses."""

    @functools.wraps(handler)
    async def wrapper(ctx: RequestContext) -> ResponseDescriptor:
        try:
            return await handler(ctx)
        except InvalidBody as e:
            return ResponseDescriptor(
                status_code=422,
                body={
                    "detail": e.error.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
            )
        except tuple(_ERROR_STATUS) as e:
            return ResponseDescriptor(status_code=_ERROR_STATUS[type(e)], body={"detail": str(e)})

    return wrapper


class StoreEndpoints:
    """Store actions served at the end of the pipeline.

    Every action opens its own session from the injected factory.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    def router(self) -> Router:
        router = Router()
        router.add("GET", "/", self.index)
        router.add("GET", "/products", _domain_errors(self.list_products))
        router.add("POST", "/products", _domain_errors(self.create_product))
        router.add("GET", "/products/{product_id:int}", _domain_errors(self.get_product))
        router.add("PUT", "/products/{product_id:int}", _domain_errors(self.update_product))
        router.add("DELETE", "/products/{product_id:int}", _domain_errors(self.delete_product))
        router.add("GET", "/orders", _domain_errors(self.list_orders))
        router.add("POST", "/orders", _domain_errors(self.create_order))
        router.add("GET", "/orders/{order_id:int}", _domain_errors(self.get_order))
        return router

    async def index(self, ctx: RequestContext) -> ResponseDescriptor:
        return ResponseDescriptor(
            body={
                "message": "Hello World!",
                "request_id": ctx.request_id,
                "culture": ctx.culture,
            }
        )

    # --- Products ---

    async def list_products(self, ctx: RequestContext) -> ResponseDescriptor:
        async with self._session_factory() as session:
            products = await catalog.list_products(session)
        return ResponseDescriptor(
            body=[ProductResponse.model_validate(p).model_dump(mode="json") for p in products]
        )

    async def get_product(self, ctx: RequestContext) -> ResponseDescriptor:
        async with self._session_factory() as session:
            product = await catalog.get_product(session, ctx.route_params["product_id"])
        return _json(ProductResponse.model_validate(product))

    async def create_product(self, ctx: RequestContext) -> ResponseDescriptor:
        body = _parse_body(ctx, ProductBody)
        async with self._session_factory() as session:
            product = await catalog.create_product(
                session, name=body.name, price=body.price, description=body.description
            )
        return _json(ProductResponse.model_validate(product), status_code=201)

    async def update_product(self, ctx: RequestContext) -> ResponseDescriptor:
        body = _parse_body(ctx, ProductBody)
        async with self._session_factory() as session:
            product = await catalog.update_product(
                session,
                ctx.route_params["product_id"],
                name=body.name,
                price=body.price,
                description=body.description,
            )
        return _json(ProductResponse.model_validate(product))

    async def delete_product(self, ctx: RequestContext) -> ResponseDescriptor:
        async with self._session_factory() as session:
            await catalog.delete_product(session, ctx.route_params["product_id"])
        return ResponseDescriptor(status_code=204)

    # --- Orders ---

    async def list_orders(self, ctx: RequestContext) -> ResponseDescriptor:
        async with self._session_factory() as session:
            found = await orders.list_orders(session)
        return ResponseDescriptor(
            body=[OrderResponse.model_validate(o).model_dump(mode="json") for o in found]
        )

    async def get_order(self, ctx: RequestContext) -> ResponseDescriptor:
        async with self._session_factory() as session:
            order = await orders.get_order(session, ctx.route_params["order_id"])
        return _json(OrderResponse.model_validate(order))

    async def create_order(self, ctx: RequestContext) -> ResponseDescriptor:
        body = _parse_body(ctx, CreateOrderBody)
        async with self._session_factory() as session:
            order = await orders.create_order(
                session,
                customer_name=body.customer_name,
                line_items=[(item.product_id, item.quantity) for item in body.line_items],
            )
        return _json(OrderResponse.model_validate(order), status_code=201)
