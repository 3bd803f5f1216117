"""庫存路由：盤點、手動調整與報表"""
from flask import request, jsonify, current_app
from flask_login import login_required, current_user

from deerlab.blueprints.inventory import inventory_bp
from deerlab.models.auth import Permission
from deerlab.services.bom_service import BomService
from deerlab.services.inventory_service import InventoryService
from deerlab.utils.decorators import permission_required
from deerlab.utils.pagination import paginated


@inventory_bp.route('/stocktake', methods=['POST'])
@login_required
@permission_required(Permission.INVENTORY_STOCKTAKE)
def stocktake():
    data = request.get_json(silent=True) or {}
    return jsonify(InventoryService.perform_stocktake(data.get('items'), current_user))


@inventory_bp.route('/adjust', methods=['POST'])
@login_required
@permission_required(Permission.INVENTORY_ADJUST)
def adjust():
    data = request.get_json(silent=True) or {}
    return jsonify(InventoryService.adjust_stock(
        data.get('itemRefPath'),
        data.get('quantityChange'),
        current_user,
        remarks=data.get('remarks'),
    ))


@inventory_bp.route('/overview')
@login_required
def overview():
    return jsonify({'success': True, 'overview': InventoryService.get_overview()})


@inventory_bp.route('/low-stock')
@login_required
def low_stock():
    items = InventoryService.get_low_stock_items()
    return jsonify({'success': True, 'items': items, 'count': len(items)})


@inventory_bp.route('/movements')
@login_required
def movements():
    """庫存流水查詢"""
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', current_app.config['ITEMS_PER_PAGE'], type=int)
    pagination = InventoryService.list_movements(
        item_ref_path=request.args.get('itemRefPath'),
        movement_type=request.args.get('type'),
        page=page,
        per_page=per_page,
    )
    return jsonify(paginated(pagination, lambda m: m.to_dict()))


@inventory_bp.route('/capacity', methods=['POST'])
@login_required
def capacity():
    """生產能力試算 (不寫入)"""
    data = request.get_json(silent=True) or {}
    result = BomService.compute_requirements(data.get('plans'))
    result['success'] = True
    return jsonify(result)
