from decimal import Decimal

from boutique.cart.models import CartItem
from boutique.cart.store import CartStore
from boutique.storage import keys


def _item(name="Phone Case Black", price=100, currency="HKD", kind="physical"):
    return CartItem(
        id=name.lower().replace(" ", "-"),
        name=name,
        unit_price_canonical=price,
        display_price=price,
        display_currency=currency,
        kind=kind,
    )


def test_add_same_physical_item_merges_lines(state):
    store = CartStore(state)
    store.add(_item())
    line = store.add(_item())

    assert len(store.items) == 1
    assert line.quantity == 2
    assert store.total() == Decimal("200")


def test_gift_cards_always_get_their_own_line(state):
    store = CartStore(state)
    a = store.add(_item("Gift Card", 500, kind="digital"))
    b = store.add(_item("Gift Card", 500, kind="digital"))

    assert len(store.items) == 2
    assert a.id != b.id
    assert all(it.quantity == 1 for it in store.items)


def test_set_quantity_removes_line_at_zero_or_below(state):
    store = CartStore(state)
    store.add(_item())
    store.add(_item())

    assert store.set_quantity(0, -5) is None
    assert store.items == []
    assert CartStore(state).items == []


def test_set_quantity_out_of_range_is_ignored(state):
    store = CartStore(state)
    store.add(_item())
    assert store.set_quantity(3, 1) is None
    assert store.items[0].quantity == 1


def test_cart_survives_reload(state):
    store = CartStore(state)
    store.add(_item())
    store.add(_item("Screen Protector", 80))
    store.set_quantity(1, 2)

    reloaded = CartStore(state)
    assert [it.model_dump() for it in reloaded.items] == [it.model_dump() for it in store.items]


def test_total_ignores_lines_in_other_currency_until_synced(state):
    store = CartStore(state)
    store.add(_item())
    store.add(_item("Leather Case", 12.8, currency="USD"))

    assert store.total("HKD") == Decimal("100")
    assert store.total("USD") == Decimal("12.8")

    changed = store.sync_currency("USD")
    assert changed == 1
    assert store.total("USD") == Decimal("25.6")
    assert store.summary()["formatted_total"] == "USD 25.60"


def test_invalid_persisted_cart_loads_empty(state):
    state.set(keys.CART, "not json")
    assert CartStore(state).items == []

    state.write_json(keys.CART, {"items": []})
    assert CartStore(state).items == []

    state.write_json(keys.CART, [{"name": "sans prix"}])
    assert CartStore(state).items == []


def test_summary_flags_digital_only_cart(state):
    store = CartStore(state)
    store.add(_item("Gift Card", 500, kind="digital"))
    summary = store.summary()
    assert summary["digital_only"] is True
    assert summary["count"] == 1

    store.add(_item())
    assert store.summary()["digital_only"] is False
