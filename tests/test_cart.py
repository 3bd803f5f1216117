from decimal import Decimal

import pytest

from deerlab.exceptions import InvalidArgument, NotFound, Unauthenticated
from deerlab.extensions import db
from deerlab.models import CartItem, Material, PurchaseOrder, Supplier
from deerlab.services.cart_service import CartService


def fill_cart(catalog, admin):
    CartService.add_item("material", catalog.pg.id, 100, admin)
    CartService.add_item("material", catalog.bottle.id, 300, admin)
    CartService.add_item("fragrance", catalog.fragrance.id, 20, admin)
    CartService.add_item("material", catalog.label.id, 1000, admin)
    CartService.add_item("material", catalog.vg.id, 100, admin)


def test_add_item_copies_item_details(app, admin, catalog):
    cart_item = CartService.add_item("material", catalog.bottle.id, 10, admin, notes="急")

    assert cart_item.code == "MAT-0001"
    assert cart_item.unit == "個"
    assert cart_item.price == Decimal("2")
    assert cart_item.supplier_id == catalog.south.id
    assert cart_item.supplier_name == "南方包材"
    assert cart_item.added_by_id == admin.id


def test_same_item_and_supplier_merge(app, admin, catalog):
    CartService.add_item("material", catalog.pg.id, 100, admin)
    CartService.add_item("material", catalog.pg.id, "50.5", admin)
    CartService.add_item("material", catalog.pg.id, 10, admin, supplier_id=catalog.south.id)

    lines = CartService.list_items()
    assert len(lines) == 2
    assert lines[0].quantity == Decimal("150.5")
    assert lines[1].supplier_name == "南方包材"


def test_add_item_validation(app, admin, catalog):
    with pytest.raises(InvalidArgument):
        CartService.add_item("widget", catalog.pg.id, 1, admin)
    with pytest.raises(InvalidArgument):
        CartService.add_item("material", catalog.pg.id, 0, admin)
    with pytest.raises(NotFound):
        CartService.add_item("fragrance", 9999, 1, admin)
    with pytest.raises(Unauthenticated):
        CartService.add_item("material", catalog.pg.id, 1, None)


def test_submit_groups_by_supplier(app, admin, catalog):
    fill_cart(catalog, admin)

    result = CartService.submit(admin)

    assert result["success"] is True
    assert result["count"] == 2
    north, south = PurchaseOrder.query.order_by(PurchaseOrder.id).all()
    # 供應商依第一次出現的順序
    assert north.supplier_id == catalog.north.id
    assert [line.code for line in north.items] == ["UV3404503", "FRG-0001", "UV3400698"]
    assert [line.code for line in south.items] == ["MAT-0001", "MAT-0002"]
    assert north.items[1].item_type == "fragrance"
    assert south.status == PurchaseOrder.STATUS_FORECAST
    assert CartItem.query.count() == 0


def test_submit_subset_keeps_other_lines(app, admin, catalog):
    fill_cart(catalog, admin)
    lines = CartService.list_items()

    result = CartService.submit(admin, [lines[1].id, lines[3].id, lines[1].id])

    assert result["count"] == 1
    remaining = [line.code for line in CartService.list_items()]
    assert remaining == ["UV3404503", "FRG-0001", "UV3400698"]


def test_empty_selection_leaves_cart_untouched(app, admin, catalog):
    fill_cart(catalog, admin)

    with pytest.raises(InvalidArgument):
        CartService.submit(admin, [])
    with pytest.raises(NotFound):
        CartService.submit(admin, [9999])

    assert CartItem.query.count() == 5
    assert PurchaseOrder.query.count() == 0


def test_submit_empty_cart(app, admin):
    with pytest.raises(InvalidArgument):
        CartService.submit(admin)


def test_submit_uses_latest_price(app, admin, catalog):
    CartService.add_item("material", catalog.bottle.id, 10, admin)
    catalog.bottle.cost_per_unit = Decimal("2.75")
    db.session.commit()

    CartService.submit(admin)

    order = PurchaseOrder.query.one()
    assert order.items[0].cost_per_unit == Decimal("2.75")


def test_submit_falls_back_to_cart_price_and_supplier_name(app, admin, catalog):
    supplier = Supplier(name="臨時供應商")
    material = Material(code="MAT-0099", name="試用瓶蓋", unit="個",
                        cost_per_unit=Decimal("1.2"), supplier=supplier)
    db.session.add_all([supplier, material])
    db.session.commit()
    CartService.add_item("material", material.id, 40, admin)

    db.session.delete(material)
    db.session.delete(supplier)
    db.session.commit()

    CartService.submit(admin)

    order = PurchaseOrder.query.one()
    assert order.supplier_name == "臨時供應商"
    assert order.items[0].code == "MAT-0099"
    assert order.items[0].cost_per_unit == Decimal("1.2")


def test_update_remove_and_clear(app, admin, catalog):
    fill_cart(catalog, admin)
    first, second = CartService.list_items()[:2]

    CartService.update_item(first.id, admin, quantity=7, notes="改量")
    assert first.quantity == Decimal("7")
    assert first.notes == "改量"

    CartService.remove_item(second.id, admin)
    assert CartItem.query.count() == 4
    with pytest.raises(NotFound):
        CartService.remove_item(second.id, admin)

    assert CartService.clear(admin) == 4
    assert CartService.list_items() == []
