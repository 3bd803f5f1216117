"""共用採購車路由"""
from flask import request, jsonify
from flask_login import login_required, current_user

from deerlab.blueprints.cart import cart_bp
from deerlab.models.auth import Permission
from deerlab.services.cart_service import CartService
from deerlab.utils.decorators import permission_required


@cart_bp.route('/', methods=['GET'])
@login_required
def index():
    items = [CartService.serialize(i) for i in CartService.list_items()]
    return jsonify({'success': True, 'items': items, 'count': len(items)})


@cart_bp.route('/', methods=['DELETE'])
@login_required
def clear():
    count = CartService.clear(current_user)
    return jsonify({'success': True, 'removedCount': count})


@cart_bp.route('/items', methods=['POST'])
@login_required
def add_item():
    data = request.get_json(silent=True) or {}
    cart_item = CartService.add_item(
        data.get('type'),
        data.get('itemId'),
        data.get('quantity', 1),
        current_user,
        supplier_id=data.get('supplierId'),
        notes=data.get('notes'),
    )
    return jsonify({'success': True, 'item': CartService.serialize(cart_item)}), 201


@cart_bp.route('/items/<int:id>', methods=['POST'])
@login_required
def update_item(id):
    data = request.get_json(silent=True) or {}
    cart_item = CartService.update_item(
        id, current_user, quantity=data.get('quantity'), notes=data.get('notes')
    )
    return jsonify({'success': True, 'item': CartService.serialize(cart_item)})


@cart_bp.route('/items/<int:id>', methods=['DELETE'])
@login_required
def remove_item(id):
    CartService.remove_item(id, current_user)
    return jsonify({'success': True})


@cart_bp.route('/submit', methods=['POST'])
@login_required
@permission_required(Permission.PURCHASE_MANAGE)
def submit():
    """送出採購車，依供應商建立採購單"""
    data = request.get_json(silent=True) or {}
    return jsonify(CartService.submit(current_user, data.get('cartItemIds'))), 201
