from typing import List, Literal, Optional
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator


class DigitalMeta(BaseModel):
    design: Optional[str] = None
    recipient_name: Optional[str] = None
    sender_name: Optional[str] = None
    message: Optional[str] = None


class CartItem(BaseModel):
    id: str
    name: str
    unit_price_canonical: Optional[float] = None  # HKD
    display_price: float = Field(ge=0)
    display_currency: str
    quantity: int = Field(default=1, ge=1)
    kind: Literal["physical", "digital"] = "physical"
    image: Optional[str] = None
    digital_meta: Optional[DigitalMeta] = None

    @field_validator("display_currency")
    def upper_currency(cls, v: str) -> str:
        return (v or "").strip().upper()

    @property
    def line_total(self) -> Decimal:
        return Decimal(str(self.display_price)) * self.quantity


class Cart(BaseModel):
    items: List[CartItem] = Field(default_factory=list)

    def total(self, currency: str) -> Decimal:
        """Somme des lignes dans `currency`; les lignes d'une autre devise sont ignorées."""
        currency = (currency or "").upper()
        return sum((it.line_total for it in self.items if it.display_currency == currency), Decimal("0"))

    @property
    def count(self) -> int:
        return sum(it.quantity for it in self.items)
