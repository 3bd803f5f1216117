from flask import request, jsonify
from flask_login import login_required, current_user

from deerlab.blueprints.work_orders import work_orders_bp
from deerlab.models.auth import Permission
from deerlab.services.work_order_service import WorkOrderService
from deerlab.utils.decorators import permission_required


@work_orders_bp.route('/', methods=['POST'])
@login_required
@permission_required(Permission.WORK_ORDER_MANAGE)
def create():
    data = request.get_json(silent=True) or {}
    result = WorkOrderService.create_work_order(
        data.get('productId'), data.get('targetQuantity'), current_user
    )
    return jsonify(result), 201


@work_orders_bp.route('/<int:id>')
@login_required
def detail(id):
    work_order = WorkOrderService.get_work_order(id)
    return jsonify({'success': True, 'workOrder': work_order.to_dict()})


@work_orders_bp.route('/<int:id>', methods=['POST'])
@login_required
@permission_required(Permission.WORK_ORDER_MANAGE)
def update(id):
    work_order = WorkOrderService.update_work_order(id, request.get_json(silent=True), current_user)
    return jsonify({'success': True, 'workOrder': work_order.to_dict()})


@work_orders_bp.route('/<int:id>/complete', methods=['POST'])
@login_required
@permission_required(Permission.WORK_ORDER_MANAGE)
def complete(id):
    """完工並扣除耗用物料"""
    data = request.get_json(silent=True) or {}
    return jsonify(WorkOrderService.complete_work_order(
        id, data.get('actualQuantity'), data.get('consumedMaterials'), current_user
    ))


@work_orders_bp.route('/<int:id>', methods=['DELETE'])
@login_required
@permission_required(Permission.WORK_ORDER_MANAGE)
def delete(id):
    return jsonify(WorkOrderService.delete_work_order(id, current_user))
