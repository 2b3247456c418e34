"""
Panier persistant d'un visiteur.
Règles:
- add: un article physique déjà présent (même nom) voit sa quantité +1; sinon nouvelle ligne (quantité 1).
  Les cartes cadeaux (digital) ont toujours leur propre ligne.
- set_quantity: une ligne qui tombe à 0 ou moins est retirée (jamais de quantité <= 0 persistée).
- Chaque mutation est persistée immédiatement dans le scope "local".
"""
import time
import logging
from decimal import Decimal
from typing import Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from boutique.fx import service as fx
from boutique.storage import keys
from boutique.storage.state import VisitorState
from .models import Cart, CartItem

logger = logging.getLogger(__name__)


class CartStore:
    def __init__(self, state: VisitorState):
        self.state = state
        self.cart = self.load()

    def load(self) -> Cart:
        raw = self.state.read_json(keys.CART, default=[])
        if not isinstance(raw, list):
            logger.warning("Panier persisté invalide (type %s), panier vidé", type(raw).__name__)
            return Cart()
        try:
            return Cart(items=raw)
        except PydanticValidationError as e:
            logger.warning("Panier persisté invalide, panier vidé: %s", e.error_count())
            return Cart()

    def save(self) -> None:
        self.state.write_json(keys.CART, [it.model_dump() for it in self.cart.items])

    @property
    def items(self):
        return self.cart.items

    def add(self, item: CartItem) -> CartItem:
        if item.kind == "physical":
            existing = next(
                (it for it in self.cart.items if it.kind == "physical" and it.name == item.name),
                None,
            )
            if existing is not None:
                existing.quantity += 1
                self.save()
                return existing
        line = item.model_copy(update={"quantity": 1})
        if line.kind == "digital":
            line.id = f"gift-card-{int(time.time() * 1000)}-{len(self.cart.items)}"
        self.cart.items.append(line)
        self.save()
        return line

    def set_quantity(self, index: int, delta: int) -> Optional[CartItem]:
        """Ajoute `delta` à la quantité de la ligne `index`; renvoie None si la ligne est retirée."""
        if index < 0 or index >= len(self.cart.items):
            return None
        line = self.cart.items[index]
        new_qty = line.quantity + int(delta)
        if new_qty <= 0:
            self.cart.items.pop(index)
            self.save()
            return None
        line.quantity = new_qty
        self.save()
        return line

    def remove(self, index: int) -> bool:
        if index < 0 or index >= len(self.cart.items):
            return False
        self.cart.items.pop(index)
        self.save()
        return True

    def clear(self) -> None:
        self.cart.items.clear()
        self.save()

    def current_currency(self) -> str:
        if self.cart.items:
            return self.cart.items[0].display_currency
        return fx.get_selected_currency(self.state)

    def total(self, currency: Optional[str] = None) -> Decimal:
        return self.cart.total(currency or self.current_currency())

    def has_physical(self) -> bool:
        return any(it.kind == "physical" for it in self.cart.items)

    def is_digital_only(self) -> bool:
        return bool(self.cart.items) and not self.has_physical()

    def sync_currency(self, currency: str, rates: Optional[Dict[str, float]] = None) -> int:
        """Reprix des lignes ayant un prix HKD dans `currency`; renvoie le nombre de lignes modifiées."""
        currency = (currency or "").upper()
        changed = 0
        for it in self.cart.items:
            if it.unit_price_canonical is None:
                continue
            if it.display_currency == currency:
                continue
            it.display_price = fx.convert(it.unit_price_canonical, currency, rates)
            it.display_currency = currency
            changed += 1
        if changed:
            self.save()
        return changed

    def summary(self, currency: Optional[str] = None) -> Dict:
        currency = (currency or self.current_currency()).upper()
        total = self.total(currency)
        return {
            "items": [it.model_dump() for it in self.cart.items],
            "count": self.cart.count,
            "currency": currency,
            "total": float(total),
            "formatted_total": fx.format_price(total, currency),
            "digital_only": self.is_digital_only(),
        }
