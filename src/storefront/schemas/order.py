from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

from storefront.database import INT4_MAX


class LineItemBody(BaseModel):
    product_id: int = Field(ge=1, le=INT4_MAX)
    quantity: int = Field(ge=1, le=INT4_MAX)


class CreateOrderBody(BaseModel):
    customer_name: str = Field(min_length=1, max_length=200)
    line_items: list[LineItemBody] = Field(default_factory=list)


class LineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity: int
    unit_price: float


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_name: str
    created_at: datetime | None = None
    line_items: list[LineItemResponse] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> float:
        return round(sum(item.unit_price * item.quantity for item in self.line_items), 2)
