"""採購單路由"""
from flask import request, jsonify, current_app
from flask_login import login_required, current_user

from deerlab.blueprints.purchase import purchase_bp
from deerlab.models.auth import Permission
from deerlab.services.purchase_service import PurchaseService
from deerlab.utils.decorators import permission_required
from deerlab.utils.pagination import paginated


@purchase_bp.route('/', methods=['GET'])
@login_required
def index():
    """採購單列表"""
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', current_app.config['ITEMS_PER_PAGE'], type=int)
    pagination = PurchaseService.list_orders(
        status=request.args.get('status', ''),
        supplier_id=request.args.get('supplier_id', 0, type=int),
        page=page,
        per_page=per_page,
    )
    return jsonify(paginated(pagination, lambda o: o.to_dict(with_items=False)))


@purchase_bp.route('/', methods=['POST'])
@login_required
@permission_required(Permission.PURCHASE_MANAGE)
def create():
    """依供應商批次建立採購單"""
    data = request.get_json(silent=True) or {}
    result = PurchaseService.create_purchase_orders(data.get('suppliers'), current_user)
    return jsonify(result), 201


@purchase_bp.route('/<int:id>')
@login_required
def detail(id):
    order = PurchaseService.get_order(id)
    return jsonify({'success': True, 'purchaseOrder': order.to_dict()})


@purchase_bp.route('/<int:id>/status', methods=['POST'])
@login_required
@permission_required(Permission.PURCHASE_MANAGE)
def update_status(id):
    data = request.get_json(silent=True) or {}
    return jsonify(PurchaseService.update_status(id, data.get('newStatus'), current_user))


@purchase_bp.route('/<int:id>/receive', methods=['POST'])
@login_required
@permission_required(Permission.PURCHASE_RECEIVE)
def receive(id):
    """收貨入庫"""
    data = request.get_json(silent=True) or {}
    return jsonify(PurchaseService.receive_items(id, data.get('items'), current_user))
