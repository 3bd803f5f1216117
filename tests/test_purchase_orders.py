import re
from decimal import Decimal

import pytest

from deerlab.exceptions import FailedPrecondition, InvalidArgument, NotFound, Unauthenticated
from deerlab.models import InventoryMovement, PurchaseOrder
from deerlab.services.purchase_service import PurchaseService


def supplier_groups(catalog):
    return [
        {
            "supplierId": catalog.north.id,
            "items": [
                {"id": catalog.pg.id, "name": "PG丙二醇", "code": "UV3404503", "quantity": 200,
                 "unit": "g", "price": "0.5"},
                {"id": catalog.fragrance.id, "name": "芒果冰沙", "code": "FRG-0001", "quantity": 50},
            ],
            "additionalFees": [{"name": "運費", "amount": 120}],
        },
        {
            "supplierId": catalog.south.id,
            "items": [
                {"id": catalog.bottle.id, "name": "玻璃瓶", "code": "MAT-0001", "quantity": 100,
                 "unit": "個", "price": 2, "type": "material"},
            ],
            "comments": "月底前交貨",
        },
    ]


def create_ordered(catalog, admin):
    result = PurchaseService.create_purchase_orders(supplier_groups(catalog), admin)
    order_id = result["purchaseOrders"][0]["id"]
    PurchaseService.update_status(order_id, PurchaseOrder.STATUS_ORDERED, admin)
    return PurchaseService.get_order(order_id)


def test_create_one_order_per_supplier(app, admin, catalog):
    result = PurchaseService.create_purchase_orders(supplier_groups(catalog), admin)

    assert result["success"] is True
    assert result["count"] == 2
    codes = [o["code"] for o in result["purchaseOrders"]]
    assert all(re.fullmatch(r"PO-\d{8}-\d{3}", code) for code in codes)
    assert [code[-3:] for code in codes] == ["001", "002"]

    north, south = PurchaseOrder.query.order_by(PurchaseOrder.id).all()
    assert north.status == PurchaseOrder.STATUS_FORECAST
    assert north.supplier_id == catalog.north.id
    assert north.supplier_name == "北方香料"
    assert north.created_by_id == admin.id
    assert [line.item_type for line in north.items] == ["material", "fragrance"]
    assert north.items[0].cost_per_unit == Decimal("0.5")
    assert north.total_amount == Decimal("220")
    assert south.comments == "月底前交貨"
    assert south.items[0].item_ref_path == f"materials/{catalog.bottle.id}"


def test_second_batch_continues_the_daily_sequence(app, admin, catalog):
    PurchaseService.create_purchase_orders(supplier_groups(catalog), admin)
    result = PurchaseService.create_purchase_orders(supplier_groups(catalog)[:1], admin)

    assert result["purchaseOrders"][0]["code"].endswith("-003")


def test_create_requires_authentication(app, catalog):
    with pytest.raises(Unauthenticated):
        PurchaseService.create_purchase_orders(supplier_groups(catalog), None)
    assert PurchaseOrder.query.count() == 0


@pytest.mark.parametrize(
    "suppliers",
    [
        None,
        [],
        [{"supplierId": 1, "items": []}],
        [{"supplierId": 1, "items": [{"id": 1, "name": "PG", "quantity": 0}]}],
        [{"supplierId": 1, "items": [{"name": "PG", "quantity": 5}]}],
    ],
)
def test_create_rejects_invalid_payload(app, admin, suppliers):
    with pytest.raises(InvalidArgument):
        PurchaseService.create_purchase_orders(suppliers, admin)
    assert PurchaseOrder.query.count() == 0


def test_status_transitions(app, admin, catalog):
    result = PurchaseService.create_purchase_orders(supplier_groups(catalog), admin)
    first, second = [o["id"] for o in result["purchaseOrders"]]

    # 預報單不可直接取消或收貨
    with pytest.raises(FailedPrecondition):
        PurchaseService.update_status(first, PurchaseOrder.STATUS_CANCELLED, admin)
    with pytest.raises(FailedPrecondition):
        PurchaseService.update_status(first, PurchaseOrder.STATUS_RECEIVED, admin)

    result = PurchaseService.update_status(first, PurchaseOrder.STATUS_ORDERED, admin)
    assert result == {"success": True, "purchaseOrderId": first, "newStatus": "已訂購"}

    PurchaseService.update_status(second, PurchaseOrder.STATUS_ORDERED, admin)
    PurchaseService.update_status(second, PurchaseOrder.STATUS_CANCELLED, admin)
    assert PurchaseService.get_order(second).status == "已取消"

    # 已取消為終態
    with pytest.raises(FailedPrecondition):
        PurchaseService.update_status(second, PurchaseOrder.STATUS_ORDERED, admin)


def test_status_validation(app, admin, catalog):
    with pytest.raises(InvalidArgument):
        PurchaseService.update_status(1, "已出貨", admin)
    with pytest.raises(InvalidArgument):
        PurchaseService.update_status(None, "已訂購", admin)
    with pytest.raises(NotFound):
        PurchaseService.update_status(9999, "已訂購", admin)


def test_receive_adds_stock_through_ledger(app, admin, catalog):
    order = create_ordered(catalog, admin)

    result = PurchaseService.receive_items(order.id, [
        {"itemRefPath": catalog.pg.ref_path, "receivedQuantity": 200},
        {"itemRefPath": catalog.fragrance.ref_path, "receivedQuantity": "48.5"},
    ], admin)

    assert result["success"] is True
    assert result["receivedItemsCount"] == 2
    assert result["itemDetails"][0]["stockAfter"] == 1200.0
    assert catalog.pg.current_stock == Decimal("1200")
    assert catalog.fragrance.current_stock == Decimal("548.5")

    order = PurchaseService.get_order(order.id)
    assert order.status == PurchaseOrder.STATUS_RECEIVED
    assert order.received_by_id == admin.id
    assert order.received_at is not None
    assert order.items[1].received_quantity == Decimal("48.5")

    movements = InventoryMovement.query.order_by(InventoryMovement.id).all()
    assert [m.movement_type for m in movements] == ["purchase_inbound", "purchase_inbound"]
    assert movements[0].related_doc_type == "purchase_orders"
    assert movements[0].related_doc_id == order.id
    assert movements[0].related_doc_code == order.code


def test_receive_twice_fails_and_counts_stock_once(app, admin, catalog):
    order = create_ordered(catalog, admin)
    items = [{"itemRefPath": catalog.pg.ref_path, "receivedQuantity": 10}]

    PurchaseService.receive_items(order.id, items, admin)
    with pytest.raises(FailedPrecondition):
        PurchaseService.receive_items(order.id, items, admin)

    assert catalog.pg.current_stock == Decimal("1010")
    assert InventoryMovement.query.count() == 1


def test_receive_requires_ordered_status(app, admin, catalog):
    result = PurchaseService.create_purchase_orders(supplier_groups(catalog), admin)
    order_id = result["purchaseOrders"][0]["id"]

    with pytest.raises(FailedPrecondition):
        PurchaseService.receive_items(order_id, [{"itemRefPath": catalog.pg.ref_path, "receivedQuantity": 1}], admin)
    assert PurchaseService.get_order(order_id).status == PurchaseOrder.STATUS_FORECAST
    assert catalog.pg.current_stock == Decimal("1000")

    with pytest.raises(NotFound):
        PurchaseService.receive_items(9999, None, admin)


def test_receive_skips_unusable_lines(app, admin, catalog):
    order = create_ordered(catalog, admin)

    result = PurchaseService.receive_items(order.id, [
        {"itemRefPath": catalog.pg.ref_path, "receivedQuantity": 0},
        {"itemRefPath": "materials/9999", "receivedQuantity": 5},
        {"itemRefPath": catalog.fragrance.ref_path, "receivedQuantity": 20},
    ], admin)

    assert result["receivedItemsCount"] == 1
    assert result["itemDetails"][0]["code"] == "FRG-0001"
    assert catalog.pg.current_stock == Decimal("1000")
    assert InventoryMovement.query.count() == 1


def test_receive_falls_back_to_code(app, admin, catalog):
    order = create_ordered(catalog, admin)

    result = PurchaseService.receive_items(order.id, [
        {"itemRefPath": "materials/9999", "code": "UV3404503", "receivedQuantity": 3},
    ], admin)

    assert result["receivedItemsCount"] == 1
    assert catalog.pg.current_stock == Decimal("1003")


def test_receive_without_positive_lines_is_rejected(app, admin, catalog):
    order = create_ordered(catalog, admin)

    with pytest.raises(InvalidArgument):
        PurchaseService.receive_items(order.id, [{"itemRefPath": catalog.pg.ref_path, "receivedQuantity": 0}], admin)
    assert PurchaseService.get_order(order.id).status == PurchaseOrder.STATUS_ORDERED


def test_receive_all_lines_when_items_omitted(app, admin, catalog):
    order = create_ordered(catalog, admin)

    result = PurchaseService.receive_items(order.id, None, admin)

    assert result["receivedItemsCount"] == 2
    assert catalog.pg.current_stock == Decimal("1200")
    assert catalog.fragrance.current_stock == Decimal("550")


def test_list_orders_filters_by_status(app, admin, catalog):
    create_ordered(catalog, admin)

    assert PurchaseService.list_orders().total == 2
    assert PurchaseService.list_orders(status=PurchaseOrder.STATUS_ORDERED).total == 1
    assert PurchaseService.list_orders(supplier_id=catalog.south.id).total == 1


def test_receive_rejects_more_than_three_decimals(app, admin, catalog):
    order = create_ordered(catalog, admin)

    with pytest.raises(InvalidArgument):
        PurchaseService.receive_items(order.id, [
            {"itemRefPath": catalog.pg.ref_path, "receivedQuantity": "0.0004"},
        ], admin)

    assert InventoryMovement.query.count() == 0
    assert PurchaseService.get_order(order.id).status == PurchaseOrder.STATUS_ORDERED


def test_repeated_item_lines_are_credited_in_order(app, admin, catalog):
    result = PurchaseService.create_purchase_orders([{
        "supplierId": catalog.north.id,
        "items": [
            {"id": catalog.pg.id, "name": "PG丙二醇", "code": "UV3404503", "quantity": 200, "unit": "g"},
            {"id": catalog.pg.id, "name": "PG丙二醇", "code": "UV3404503", "quantity": 50, "unit": "g"},
        ],
    }], admin)
    order_id = result["purchaseOrders"][0]["id"]
    PurchaseService.update_status(order_id, PurchaseOrder.STATUS_ORDERED, admin)

    PurchaseService.receive_items(order_id, [
        {"itemRefPath": catalog.pg.ref_path, "receivedQuantity": 200},
        {"itemRefPath": catalog.pg.ref_path, "receivedQuantity": 50},
    ], admin)

    order = PurchaseService.get_order(order_id)
    assert [line.received_quantity for line in order.items] == [Decimal("200"), Decimal("50")]
    assert catalog.pg.current_stock == Decimal("1250")
