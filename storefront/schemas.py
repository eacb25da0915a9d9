from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ApiModel(BaseModel):
    """Base for wire models: camelCase aliases in, snake_case attributes out."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Price(ApiModel):
    current: float = 0.0
    currency: str = "USD"
    before_discount: float = Field(0.0, alias="beforeDiscount")
    discount_percentage: float = Field(0.0, alias="discountPercentage")


class Category(ApiModel):
    id: str
    name: str = ""
    image: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class Product(ApiModel):
    id: str = Field(alias="_id")
    title: str = ""
    description: str = ""
    price: Price = Field(default_factory=Price)
    category: Optional[Category] = None
    brand: str = ""
    thumbnail: str = ""
    images: List[str] = Field(default_factory=list)
    stock: int = 0
    rating: float = 0.0
    warranty: int = 0
    issue_date: Optional[str] = Field(None, alias="issueDate")

    @field_validator("rating", "stock", "warranty", mode="before")
    @classmethod
    def _missing_number_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def in_stock(self) -> bool:
        return self.stock > 0


class ProductPage(ApiModel):
    total: int = 0
    limit: int = 0
    page: int = 1
    skip: int = 0
    products: List[Product] = Field(default_factory=list)


class CartLine(ApiModel):
    product_id: str = Field(alias="productId")
    quantity: int = Field(ge=1)
    product: Optional[Product] = None

    @property
    def line_total(self) -> float:
        if self.product is None:
            return 0.0
        return self.product.price.current * self.quantity


class Cart(ApiModel):
    id: str = Field("", alias="_id")
    owner_id: str = Field("", validation_alias=AliasChoices("userId", "user", "owner_id"))
    lines: List[CartLine] = Field(default_factory=list, alias="products")
    total: float = 0.0

    @field_validator("total", mode="before")
    @classmethod
    def _flatten_total(cls, value: Any) -> Any:
        # The API nests the amount as total.price.current.
        if isinstance(value, dict):
            price = value.get("price") or {}
            return price.get("current", 0.0) if isinstance(price, dict) else 0.0
        return 0.0 if value is None else value

    @classmethod
    def empty(cls) -> "Cart":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def line_for(self, product_id: str) -> Optional[CartLine]:
        return next((line for line in self.lines if line.product_id == product_id), None)


class CartSummary(BaseModel):
    """Badge-level cache of the server cart."""

    has_cart: bool = False
    item_count: int = 0
    has_unseen_notification: bool = False

    @classmethod
    def from_cart(cls, cart: Optional[Cart], notify: bool = False) -> "CartSummary":
        count = cart.item_count if cart is not None else 0
        return cls(has_cart=count > 0, item_count=count, has_unseen_notification=notify)


class User(ApiModel):
    id: str = Field(alias="_id")
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: str = ""
    email_verified: bool = Field(False, alias="emailVerified")
    verified: Optional[bool] = None
    age: Optional[int] = None
    address: str = ""
    phone: str = ""
    zipcode: str = ""
    avatar: str = ""
    gender: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_verified(self) -> bool:
        return bool(self.email_verified or self.verified)


class AuthTokens(ApiModel):
    access_token: str
    refresh_token: str
    user: Optional[User] = None


class SignUpRequest(ApiModel):
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    age: int
    email: str
    password: str
    address: str
    phone: str
    zipcode: str
    avatar: str
    gender: Literal["MALE", "FEMALE"]


class UserUpdate(ApiModel):
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    age: Optional[int] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    zipcode: Optional[str] = None
    avatar: Optional[str] = None
    gender: Optional[Literal["MALE", "FEMALE"]] = None


class LocalReview(ApiModel):
    id: str = Field(alias="_id")
    product_id: str = Field(alias="productId")
    product_title: str = Field("", alias="productTitle")
    product_image: str = Field("", alias="productImage")
    product_category: str = Field("", alias="productCategory")
    rating: int = Field(ge=1, le=5)
    text: str = Field("", alias="review")
    author_name: str = Field("", alias="userName")
    author_id: str = Field("", alias="userId")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")


class Order(ApiModel):
    id: str = Field(alias="_id")
    lines: List[CartLine] = Field(default_factory=list, alias="items")
    subtotal: float = 0.0
    shipping: float = 0.0
    total: float = 0.0
    currency: str = "USD"
    payment_method: str = Field("", alias="paymentMethod")
    shipping_method: str = Field("", alias="shippingMethod")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")

    def contains(self, product_id: str) -> bool:
        return any(line.product_id == product_id for line in self.lines)


class QRCode(ApiModel):
    text: str = ""
    type: str = ""
    format: str = ""
    error_correction_level: str = Field("", alias="errorCorrectionLevel")
    result: str = ""


class FilterCriteria(BaseModel):
    """Catalog filter and sort state."""

    query: str = ""
    search_text: str = ""
    brand: str = ""
    min_price: float = 0.0
    max_price: float = 1000.0
    rating_bucket: Optional[int] = Field(None, ge=1, le=5)
    sort_price: Optional[Literal["asc", "desc"]] = None
    sort_rating: Optional[Literal["asc", "desc"]] = None
