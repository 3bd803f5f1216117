"""共用採購車"""
from collections import OrderedDict
from decimal import Decimal
from flask import current_app
from deerlab.extensions import db
from deerlab.exceptions import InvalidArgument, NotFound
from deerlab.models.cart import CartItem
from deerlab.models.catalog import Supplier
from deerlab.schemas import (
    parse_payload, AddCartItemRequest, UpdateCartItemRequest, SubmitCartRequest,
    CreatePurchaseOrdersRequest,
)
from deerlab.services.inventory_service import ITEM_TYPE_MODELS
from deerlab.services.purchase_service import PurchaseService, require_user
from deerlab.utils.numbers import as_number
from deerlab.utils.transaction import run_in_transaction


class CartService:

    @staticmethod
    def list_items():
        return CartItem.query.order_by(CartItem.id).all()

    @staticmethod
    def add_item(item_type, item_id, quantity, user, supplier_id=None, notes=None):
        """加入採購車；同品項同供應商的項目合併數量"""
        require_user(user)
        payload = parse_payload(AddCartItemRequest, {
            'type': item_type,
            'itemId': item_id,
            'quantity': quantity,
            'supplierId': supplier_id,
            'notes': notes,
        })

        def work():
            model = ITEM_TYPE_MODELS[payload.type]
            item = model.query.get(payload.item_id)
            if item is None:
                raise NotFound(f'{payload.type} {payload.item_id} 不存在。')

            supplier_id = payload.supplier_id if payload.supplier_id is not None else item.supplier_id
            supplier = Supplier.query.get(supplier_id) if supplier_id is not None else None

            cart_item = CartItem.query.filter_by(
                item_type=payload.type, item_id=item.id, supplier_id=supplier_id
            ).with_for_update().first()
            if cart_item:
                cart_item.quantity = (cart_item.quantity or Decimal(0)) + payload.quantity
                if payload.notes:
                    cart_item.notes = payload.notes
            else:
                cart_item = CartItem(
                    item_type=payload.type,
                    item_id=item.id,
                    code=item.code,
                    name=item.name,
                    unit=item.unit or '',
                    quantity=payload.quantity,
                    price=item.cost_per_unit or Decimal(0),
                    supplier_id=supplier_id,
                    supplier_name=supplier.name if supplier else None,
                    notes=payload.notes,
                    added_by_id=user.id,
                )
                db.session.add(cart_item)
            db.session.flush()
            return cart_item

        cart_item = run_in_transaction(work, '加入採購車', actor=user, target=f'{payload.type}/{payload.item_id}')
        current_app.logger.info(
            f'使用者 {user.id} 將 {cart_item.item_ref_path} x {payload.quantity} 加入採購車'
        )
        return cart_item

    @staticmethod
    def update_item(cart_item_id, user, quantity=None, notes=None):
        payload = parse_payload(UpdateCartItemRequest, {'quantity': quantity, 'notes': notes})

        def work():
            cart_item = CartItem.query.filter_by(id=cart_item_id).with_for_update().first()
            if cart_item is None:
                raise NotFound(f'採購車項目 {cart_item_id} 不存在。')
            if payload.quantity is not None:
                cart_item.quantity = payload.quantity
            if payload.notes is not None:
                cart_item.notes = payload.notes
            return cart_item

        cart_item = run_in_transaction(work, '更新採購車', actor=user, target=cart_item_id)
        current_app.logger.info(f'使用者 {user.id} 更新採購車項目 {cart_item_id}')
        return cart_item

    @staticmethod
    def remove_item(cart_item_id, user):
        def work():
            cart_item = CartItem.query.get(cart_item_id)
            if cart_item is None:
                raise NotFound(f'採購車項目 {cart_item_id} 不存在。')
            db.session.delete(cart_item)

        run_in_transaction(work, '移除採購車項目', actor=user, target=cart_item_id)
        current_app.logger.info(f'使用者 {user.id} 移除採購車項目 {cart_item_id}')

    @staticmethod
    def clear(user):
        count = run_in_transaction(lambda: CartItem.query.delete(), '清空採購車', actor=user)
        current_app.logger.info(f'使用者 {user.id} 清空採購車，共 {count} 項')
        return count

    @staticmethod
    def submit(user, cart_item_ids=None):
        """
        送出採購車：依供應商分組建立採購單，並移除已送出的項目。
        單價在送出時重新讀取，品項已不存在時沿用加入時的價格。
        """
        require_user(user)
        payload = parse_payload(SubmitCartRequest, {'cartItemIds': cart_item_ids})
        if payload.cart_item_ids is not None and not payload.cart_item_ids:
            raise InvalidArgument('請至少選擇一個採購車項目。')

        def work():
            query = CartItem.query
            if payload.cart_item_ids is not None:
                query = query.filter(CartItem.id.in_(payload.cart_item_ids))
            lines = query.order_by(CartItem.id).with_for_update().all()
            if payload.cart_item_ids is not None and len(lines) != len(payload.cart_item_ids):
                found = {line.id for line in lines}
                missing = [i for i in payload.cart_item_ids if i not in found]
                raise NotFound(f'採購車項目 {missing} 不存在。')
            if not lines:
                raise InvalidArgument('採購車中沒有可送出的項目。')

            groups = CartService.group_by_supplier(lines)
            request = parse_payload(CreatePurchaseOrdersRequest, {'suppliers': groups})
            orders = PurchaseService.build_orders(request.suppliers, user)
            for line in lines:
                db.session.delete(line)
            return orders, len(lines)

        orders, consumed = run_in_transaction(work, '送出採購車', actor=user, target=payload.cart_item_ids)
        current_app.logger.info(
            f"使用者 {user.id} 送出採購車 {consumed} 項，建立採購單: {', '.join(o.code for o in orders)}"
        )
        return {
            'success': True,
            'count': len(orders),
            'purchaseOrders': [{'id': o.id, 'code': o.code} for o in orders],
        }

    @staticmethod
    def group_by_supplier(lines):
        """依供應商分組 (保持第一次出現的順序)，並附上最新單價"""
        groups = OrderedDict()
        for line in lines:
            group = groups.get(line.supplier_id)
            if group is None:
                supplier = Supplier.query.get(line.supplier_id) if line.supplier_id is not None else None
                group = {
                    'supplierId': line.supplier_id,
                    'supplierName': supplier.name if supplier else line.supplier_name,
                    'items': [],
                }
                groups[line.supplier_id] = group

            item = ITEM_TYPE_MODELS[line.item_type].query.get(line.item_id)
            if item is not None and item.cost_per_unit is not None:
                price = item.cost_per_unit
            else:
                price = line.price or Decimal(0)

            group['items'].append({
                'id': line.item_id,
                'type': line.item_type,
                'name': (item.name if item else line.name) or '',
                'code': (item.code if item else line.code) or '',
                'unit': line.unit or None,
                'quantity': line.quantity,
                'price': price,
            })
        return list(groups.values())

    @staticmethod
    def serialize(cart_item):
        data = cart_item.to_dict()
        data['subtotal'] = as_number((cart_item.quantity or 0) * (cart_item.price or 0))
        return data
