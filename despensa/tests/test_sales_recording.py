from datetime import date, datetime, timezone

import pytest

from despensa.app.domain.state import (
    DayClosing,
    LedgerState,
    Payment,
    PaymentMethod,
    Sale,
    Settings,
    SinglePayment,
    SplitPayment,
    load_state,
)
from despensa.app.services import sales_service
from despensa.app.services.exceptions import (
    LockedStateError,
    NotFoundError,
    PriceOverrideRequired,
    ValidationError,
)
from despensa.app.services.sales_service import Cart, PayOnCredit, PaySplit, PayWith

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


def _cart(state, *codes):
    cart = Cart()
    for code in codes:
        cart = sales_service.add_to_cart(cart, state.products, code)
    return cart


def test_add_to_cart_merges_repeated_scans(catalog_state):
    cart = _cart(catalog_state, "779001", "779002", "779001")

    assert len(cart.lines) == 2
    leche = next(line for line in cart.lines if line.ean == "779001")
    assert leche.quantity == 2
    assert cart.total == 2500


def test_unknown_code_is_not_found(catalog_state):
    with pytest.raises(NotFoundError):
        sales_service.add_to_cart(Cart(), catalog_state.products, "000")


def test_zero_priced_product_requires_override(catalog_state):
    with pytest.raises(PriceOverrideRequired) as excinfo:
        sales_service.add_to_cart(Cart(), catalog_state.products, "779003")
    assert excinfo.value.ean == "779003"


def test_override_price_is_used_for_the_line_only(catalog_state):
    cart = sales_service.add_to_cart(Cart(), catalog_state.products, "779003", override_price="750")
    state = sales_service.record_sale(catalog_state, cart, PayWith(PaymentMethod.CASH), now=NOW)

    sale = state.sales[0]
    assert sale.total == 750
    assert sale.line_items[0].unit_price == 750
    queso = next(p for p in state.products if p.ean == "779003")
    assert queso.unit_price == 0


@pytest.mark.parametrize("raw", ["12345678901", -5, "abc", ""])
def test_override_price_rejects_bad_input(raw):
    with pytest.raises(ValidationError):
        sales_service.validate_override_price(raw)


def test_set_line_quantity_never_drops_below_one(catalog_state):
    cart = _cart(catalog_state, "779001")
    line_id = cart.lines[0].id

    assert sales_service.set_line_quantity(cart, line_id, 0).lines[0].quantity == 1
    assert sales_service.set_line_quantity(cart, line_id, 4).total == 4000
    assert sales_service.remove_line(cart, line_id).is_empty()


def test_record_sale_prepends_a_floating_sale(catalog_state):
    cart = _cart(catalog_state, "779001", "779002")
    state = sales_service.record_sale(catalog_state, cart, PayWith(PaymentMethod.CARD_NETWORK_A), now=NOW)
    state = sales_service.record_sale(state, _cart(state, "779002"), PayWith(PaymentMethod.CASH), now=NOW)

    assert [s.total for s in state.sales] == [500, 1500]
    assert all(s.business_date is None for s in state.sales)
    assert state.sales[1].settlement == SinglePayment(method=PaymentMethod.CARD_NETWORK_A)


def test_empty_cart_is_rejected(catalog_state):
    with pytest.raises(ValidationError):
        sales_service.record_sale(catalog_state, Cart(), PayWith(PaymentMethod.CASH))


def test_split_payment_must_add_up_to_the_total(catalog_state):
    cart = _cart(catalog_state, "779001", "779002")
    short = PaySplit([Payment(method="efectivo", amount=1000), Payment(method="posnet", amount=400)])

    with pytest.raises(ValidationError):
        sales_service.record_sale(catalog_state, cart, short, now=NOW)


def test_split_payment_preserves_the_total(catalog_state):
    cart = _cart(catalog_state, "779001", "779002")
    split = PaySplit(
        [Payment(method="efectivo", amount=1000), Payment(method="mercadopago", amount=500.005)]
    )
    state = sales_service.record_sale(catalog_state, cart, split, now=NOW)

    sale = state.sales[0]
    assert isinstance(sale.settlement, SplitPayment)
    assert sum(sale.amount_by_method().values()) == pytest.approx(sale.total, abs=0.01)
    assert sale.amount_by_method()[PaymentMethod.CASH] == 1000


def test_split_payment_cannot_include_store_credit(catalog_state):
    cart = _cart(catalog_state, "779001")
    split = PaySplit([Payment(method="fiado", amount=1000)])

    with pytest.raises(ValidationError):
        sales_service.record_sale(catalog_state, cart, split, now=NOW)


def test_credit_settlement_goes_to_the_ledger_not_to_sales(catalog_state):
    cart = _cart(catalog_state, "779001")
    state = sales_service.record_sale(catalog_state, cart, PayOnCredit("Ana"), now=NOW)

    assert state.sales == []
    assert [a.person_name for a in state.credit_accounts] == ["Ana"]


def test_change_payment_method_collapses_split(catalog_state):
    cart = _cart(catalog_state, "779001", "779002")
    split = PaySplit([Payment(method="efectivo", amount=700), Payment(method="posnet", amount=800)])
    state = sales_service.record_sale(catalog_state, cart, split, now=NOW)
    sale_id = state.sales[0].id

    state = sales_service.change_payment_method(state, sale_id, PaymentMethod.CARD_NETWORK_B)

    assert state.sales[0].amount_by_method() == {PaymentMethod.CARD_NETWORK_B: 1500}


def test_sales_of_a_closed_day_are_locked():
    closed_day = date(2026, 3, 9)
    sale = Sale(
        id="s1",
        timestamp=NOW,
        line_items=[],
        settlement=SinglePayment(method=PaymentMethod.CASH),
        total=100,
        business_date=closed_day,
    )
    state = LedgerState(
        sales=[sale],
        closings={closed_day: DayClosing(is_closed=True)},
        settings=Settings(current_open_business_date=date(2026, 3, 10)),
    )

    assert sales_service.sale_is_locked(state, sale)
    with pytest.raises(LockedStateError):
        sales_service.delete_sale(state, "s1")
    with pytest.raises(LockedStateError):
        sales_service.change_payment_method(state, "s1", PaymentMethod.CARD_NETWORK_A)


def test_delete_sale_on_open_day(catalog_state):
    state = sales_service.record_sale(catalog_state, _cart(catalog_state, "779001"), PayWith("efectivo"), now=NOW)
    state = sales_service.delete_sale(state, state.sales[0].id)
    assert state.sales == []

    with pytest.raises(NotFoundError):
        sales_service.delete_sale(state, "missing")


def test_legacy_flat_payment_fields_are_upgraded():
    state = load_state(
        {
            "ventas": [
                {"id": "a", "fecha": "2026-03-01T12:00:00Z", "items": [], "total": 300, "metodo": "posnet"},
                {
                    "id": "b",
                    "fecha": "2026-03-01T13:00:00Z",
                    "items": [],
                    "total": 300,
                    "pagos": [{"metodo": "efectivo", "monto": 100}, {"metodo": "mercadopago", "monto": 200}],
                    "fechaCierre": "2026-03-01",
                },
            ]
        }
    )

    first, second = state.sales
    assert first.settlement == SinglePayment(method=PaymentMethod.CARD_NETWORK_B)
    assert isinstance(second.settlement, SplitPayment)
    assert second.business_date == date(2026, 3, 1)
