from pydantic import BaseModel, ConfigDict, Field

# Numeric(10, 2) on the Product.price column
MAX_PRICE = 99_999_999.99


class ProductBody(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    price: float = Field(ge=0, le=MAX_PRICE, allow_inf_nan=False)


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    price: float
