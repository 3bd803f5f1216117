"""採購單服務"""
from datetime import datetime
from decimal import Decimal
from flask import current_app
from deerlab.extensions import db
from deerlab.exceptions import InvalidArgument, Unauthenticated, NotFound, FailedPrecondition
from deerlab.models.catalog import Supplier
from deerlab.models.purchase import PurchaseOrder, PurchaseOrderItem
from deerlab.models.stock import InventoryMovement
from deerlab.schemas import (
    parse_payload, CreatePurchaseOrdersRequest, UpdatePurchaseOrderStatusRequest,
    ReceivePurchaseOrderRequest,
)
from deerlab.services.inventory_service import InventoryService
from deerlab.services.sequence_service import SequenceService
from deerlab.utils.numbers import as_number
from deerlab.utils.transaction import run_in_transaction

UNKNOWN_SUPPLIER = '未指定供應商'


def require_user(user):
    if user is None or not getattr(user, 'is_authenticated', False):
        raise Unauthenticated('需要身分驗證才能建立採購單。')


class PurchaseService:
    """採購單建立、狀態流轉與收貨入庫"""

    @staticmethod
    def create_purchase_orders(suppliers, user):
        """
        依供應商批次建立採購單 (一個供應商一張)
        :param suppliers: [{'supplierId': 1, 'items': [{'id': 3, 'name': ..., 'quantity': 10}]}, ...]
        """
        require_user(user)
        payload = parse_payload(CreatePurchaseOrdersRequest, {'suppliers': suppliers})

        orders = run_in_transaction(
            lambda: PurchaseService.build_orders(payload.suppliers, user),
            '建立採購單',
            actor=user,
        )
        current_app.logger.info(
            f"使用者 {user.id} 建立 {len(orders)} 張採購單: {', '.join(o.code for o in orders)}"
        )
        return {
            'success': True,
            'count': len(orders),
            'purchaseOrders': [{'id': o.id, 'code': o.code} for o in orders],
        }

    @staticmethod
    def build_orders(groups, user):
        """
        在目前交易內建立採購單 (不 commit)，供購物車送出時共用。
        一次保留 len(groups) 個流水號，避免並行下重號。
        """
        codes = SequenceService.next_dated_codes('purchaseOrders', 'PO', len(groups))

        orders = []
        for code, group in zip(codes, groups):
            supplier_name = group.supplier_name
            if not supplier_name and group.supplier_id is not None:
                supplier = Supplier.query.get(group.supplier_id)
                supplier_name = supplier.name if supplier else None

            order = PurchaseOrder(
                code=code,
                supplier_id=group.supplier_id,
                supplier_name=supplier_name or UNKNOWN_SUPPLIER,
                status=PurchaseOrder.STATUS_FORECAST,
                additional_fees=[
                    {'name': fee.name, 'amount': as_number(fee.amount)} for fee in group.additional_fees
                ],
                comments=group.comments or '',
                created_by_id=user.id,
            )
            for line_no, line in enumerate(group.items, start=1):
                order.items.append(PurchaseOrderItem(
                    line_no=line_no,
                    item_type=line.item_type,
                    item_id=line.id,
                    name=line.name,
                    code=line.code,
                    unit=line.unit or '',
                    quantity=line.quantity,
                    cost_per_unit=line.price or Decimal(0),
                ))
            db.session.add(order)
            orders.append(order)

        db.session.flush()
        return orders

    @staticmethod
    def update_status(purchase_order_id, new_status, user):
        """
        更新採購單狀態
        只允許 預報單 -> 已訂購、已訂購 -> 已取消；已收貨只能透過收貨入庫
        """
        payload = parse_payload(UpdatePurchaseOrderStatusRequest, {
            'purchaseOrderId': purchase_order_id,
            'newStatus': new_status,
        })
        if payload.new_status not in PurchaseOrder.STATUSES:
            raise InvalidArgument(f'無效的採購單狀態: {payload.new_status}')
        if payload.new_status == PurchaseOrder.STATUS_RECEIVED:
            raise FailedPrecondition('請使用收貨入庫功能將採購單標記為已收貨。')

        def work():
            order = PurchaseOrder.query.filter_by(id=payload.purchase_order_id).with_for_update().first()
            if order is None:
                raise NotFound(f'採購單 {payload.purchase_order_id} 不存在。')
            if not order.can_transition_to(payload.new_status):
                raise FailedPrecondition(
                    f'採購單 {order.code} 目前為「{order.status}」，無法變更為「{payload.new_status}」。'
                )
            old_status = order.status
            order.status = payload.new_status
            order.updated_at = datetime.utcnow()
            return order, old_status

        order, old_status = run_in_transaction(
            work, '更新採購單狀態', actor=user, target=payload.purchase_order_id
        )
        current_app.logger.info(
            f'使用者 {user.id} 將採購單 {order.code} 狀態由 {old_status} 更新為 {order.status}'
        )
        return {'success': True, 'purchaseOrderId': order.id, 'newStatus': order.status}

    @staticmethod
    def receive_items(purchase_order_id, items, user):
        """
        收貨入庫
        :param items: [{'itemRefPath': 'materials/1', 'receivedQuantity': 10}, ...]，
                      省略時全部明細依訂購數量入庫
        """
        payload = parse_payload(ReceivePurchaseOrderRequest, {
            'purchaseOrderId': purchase_order_id,
            'items': items,
        })
        if payload.items is not None and not any(i.received_quantity > 0 for i in payload.items):
            raise InvalidArgument('沒有任何收貨數量大於 0 的品項。')

        def work():
            order = PurchaseOrder.query.filter_by(id=payload.purchase_order_id).with_for_update().first()
            if order is None:
                raise NotFound(f'採購單 {payload.purchase_order_id} 不存在。')
            if order.status != PurchaseOrder.STATUS_ORDERED:
                raise FailedPrecondition(
                    f'採購單 {order.code} 目前為「{order.status}」，只有「已訂購」狀態可以收貨。'
                )

            order.status = PurchaseOrder.STATUS_RECEIVED
            order.received_at = datetime.utcnow()
            order.received_by_id = user.id

            if payload.items is None:
                entries = [(line.item_ref_path, line.quantity, line.code) for line in order.items]
            else:
                entries = [(i.item_ref_path, i.received_quantity, i.code) for i in payload.items]

            details = []
            for ref_path, quantity, code in entries:
                if quantity is None or quantity <= 0:
                    current_app.logger.warning(f'採購單 {order.code} 略過數量非正的品項: {ref_path or code}')
                    continue

                item = PurchaseService.resolve_received_item(ref_path, code)
                if item is None:
                    current_app.logger.warning(f'採購單 {order.code} 找不到收貨品項: {ref_path or code}')
                    continue

                movement = InventoryService.apply_stock_change(
                    item, quantity, InventoryMovement.TYPE_PURCHASE_INBOUND, user,
                    related=order, remark=f'採購單 {order.code} 收貨入庫'
                )
                if movement is None:
                    continue

                line = PurchaseService.match_order_line(order, item)
                if line is not None:
                    line.received_quantity = (line.received_quantity or Decimal(0)) + quantity

                details.append({
                    'itemRefPath': item.ref_path,
                    'code': item.code,
                    'name': item.name,
                    'receivedQuantity': as_number(quantity),
                    'stockBefore': as_number(movement.stock_before),
                    'stockAfter': as_number(movement.stock_after),
                })
            return order, details

        order, details = run_in_transaction(
            work, '採購單收貨', actor=user, target=payload.purchase_order_id
        )
        InventoryService.invalidate_overview()
        current_app.logger.info(
            f'使用者 {user.id} 完成採購單 {order.code} 收貨，入庫 {len(details)} 項。'
        )
        return {'success': True, 'receivedItemsCount': len(details), 'itemDetails': details}

    @staticmethod
    def resolve_received_item(ref_path, code):
        """先以引用路徑取得，取不到再以代號查物料與香精"""
        item = InventoryService.resolve_item_ref(ref_path, lock=True) if ref_path else None
        if item is None and code:
            for item_type in ('material', 'fragrance'):
                item = InventoryService.find_item_by_code(item_type, code, lock=True)
                if item is not None:
                    break
        return item

    @staticmethod
    def match_order_line(order, item):
        """
        找出收貨要記入的採購明細。
        同一品項出現在多行時，依序記入尚未收足的那一行；都收足了就記在最後一行。
        """
        candidates = [
            line for line in order.items
            if line.item_type == item.ITEM_TYPE and line.item_id == item.id
        ]
        if not candidates:
            candidates = [line for line in order.items if line.code and line.code == item.code]
        if not candidates:
            return None
        for line in candidates:
            if (line.received_quantity or Decimal(0)) < (line.quantity or Decimal(0)):
                return line
        return candidates[-1]

    @staticmethod
    def list_orders(status=None, supplier_id=None, page=1, per_page=20):
        query = PurchaseOrder.query
        if status:
            query = query.filter_by(status=status)
        if supplier_id:
            query = query.filter_by(supplier_id=supplier_id)
        return query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

    @staticmethod
    def get_order(purchase_order_id):
        order = PurchaseOrder.query.get(purchase_order_id)
        if order is None:
            raise NotFound(f'採購單 {purchase_order_id} 不存在。')
        return order
