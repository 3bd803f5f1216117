"""工單服務"""
from datetime import datetime
from decimal import Decimal
from flask import current_app
from deerlab.extensions import db
from deerlab.exceptions import InvalidArgument, NotFound, FailedPrecondition
from deerlab.models.catalog import Product
from deerlab.models.production import WorkOrder
from deerlab.models.stock import InventoryMovement
from deerlab.schemas import (
    parse_payload, CreateWorkOrderRequest, UpdateWorkOrderRequest, CompleteWorkOrderRequest,
)
from deerlab.services.bom_service import BomService
from deerlab.services.inventory_service import InventoryService
from deerlab.services.sequence_service import SequenceService
from deerlab.utils.numbers import to_decimal, as_number
from deerlab.utils.transaction import run_in_transaction


class WorkOrderService:

    @staticmethod
    def product_snapshot(product):
        fragrance = product.fragrance
        return {
            'code': product.code,
            'name': product.name,
            'seriesName': product.series.name if product.series else '',
            'fragranceName': fragrance.name if fragrance else '',
            'fragranceCode': fragrance.code if fragrance else '',
            'nicotineMg': as_number(product.nicotine_mg or 0),
        }

    @staticmethod
    def create_work_order(product_id, target_quantity, user):
        """
        建立工單：計算並凍結 BOM，產生 WO-YYYYMMDD-NNN 工單號
        """
        payload = parse_payload(CreateWorkOrderRequest, {
            'productId': product_id,
            'targetQuantity': target_quantity,
        })

        def work():
            product = Product.query.get(payload.product_id)
            if product is None:
                raise NotFound(f'產品 {payload.product_id} 不存在。')

            bom = BomService.compute_bom(product, payload.target_quantity)
            code = SequenceService.next_dated_codes('workOrders', 'WO')[0]

            work_order = WorkOrder(
                code=code,
                product_id=product.id,
                product_snapshot=WorkOrderService.product_snapshot(product),
                bill_of_materials=BomService.serialize_bom(bom),
                target_quantity=payload.target_quantity,
                actual_quantity=Decimal(0),
                status=WorkOrder.STATUS_UNCONFIRMED,
                qc_status=WorkOrder.QC_PENDING,
                notes='',
                created_by_id=user.id,
            )
            db.session.add(work_order)
            db.session.flush()
            return work_order

        work_order = run_in_transaction(work, '建立工單', actor=user, target=f'products/{payload.product_id}')
        current_app.logger.info(
            f'使用者 {user.id} 建立工單 {work_order.code} (產品 {payload.product_id}，目標產量 {payload.target_quantity})'
        )
        return {'success': True, 'workOrderId': work_order.id, 'workOrderCode': work_order.code}

    @staticmethod
    def update_work_order(work_order_id, updates, user):
        """更新工單狀態、品檢狀態、數量或備註；完工只能透過完工作業"""
        payload = parse_payload(UpdateWorkOrderRequest, updates)
        if payload.status is not None and payload.status not in WorkOrder.STATUSES:
            raise InvalidArgument(f'無效的工單狀態: {payload.status}')
        if payload.status == WorkOrder.STATUS_COMPLETED:
            raise FailedPrecondition('請使用完工作業將工單標記為完工。')
        if payload.qc_status is not None and payload.qc_status not in WorkOrder.QC_STATUSES:
            raise InvalidArgument(f'無效的品檢狀態: {payload.qc_status}')

        def work():
            work_order = WorkOrder.query.filter_by(id=work_order_id).with_for_update().first()
            if work_order is None:
                raise NotFound(f'工單 {work_order_id} 不存在。')

            if work_order.status == WorkOrder.STATUS_COMPLETED and (
                    payload.status is not None or payload.target_quantity is not None
                    or payload.actual_quantity is not None):
                raise FailedPrecondition(f'工單 {work_order.code} 已完工，只能更新品檢狀態與備註。')

            if payload.status is not None:
                work_order.status = payload.status
            if payload.qc_status is not None:
                work_order.qc_status = payload.qc_status
            if payload.target_quantity is not None:
                work_order.target_quantity = payload.target_quantity
            if payload.actual_quantity is not None:
                work_order.actual_quantity = payload.actual_quantity
            if payload.notes is not None:
                work_order.notes = payload.notes
            work_order.updated_at = datetime.utcnow()
            return work_order

        work_order = run_in_transaction(work, '更新工單', actor=user, target=work_order_id)
        current_app.logger.info(f'使用者 {user.id} 更新工單 {work_order.code}')
        return work_order

    @staticmethod
    def complete_work_order(work_order_id, actual_quantity, consumed_materials, user):
        """
        完工：扣除實際耗用的物料 (庫存最低扣到 0)，並記錄工單耗用流水
        :param consumed_materials: [{'itemRefPath': 'materials/1', 'consumedQuantity': 10}, ...]
        """
        payload = parse_payload(CompleteWorkOrderRequest, {
            'actualQuantity': actual_quantity,
            'consumedMaterials': consumed_materials,
        })

        def work():
            work_order = WorkOrder.query.filter_by(id=work_order_id).with_for_update().first()
            if work_order is None:
                raise NotFound(f'工單 {work_order_id} 不存在。')
            if work_order.status not in WorkOrder.COMPLETABLE_STATUSES:
                raise FailedPrecondition(
                    f'工單 {work_order.code} 目前為「{work_order.status}」，只有「預報」或「進行」狀態可以完工。'
                )

            consumed = 0
            for entry in payload.consumed_materials:
                item = InventoryService.resolve_item_ref(entry.item_ref_path, lock=True)
                if item is None:
                    raise NotFound(f'項目 {entry.item_ref_path} 不存在。')

                current = to_decimal(item.current_stock, Decimal(0))
                new_stock = max(Decimal(0), current - entry.consumed_quantity)
                movement = InventoryService.apply_stock_change(
                    item, new_stock - current, InventoryMovement.TYPE_WORK_ORDER, user,
                    related=work_order, remark=f'工單 {work_order.code} 耗用 {entry.consumed_quantity}'
                )
                if movement is not None:
                    consumed += 1

            work_order.status = WorkOrder.STATUS_COMPLETED
            work_order.actual_quantity = payload.actual_quantity
            work_order.completed_at = datetime.utcnow()
            work_order.completed_by_id = user.id
            return work_order, consumed

        work_order, consumed = run_in_transaction(work, '工單完工', actor=user, target=work_order_id)
        InventoryService.invalidate_overview()
        current_app.logger.info(
            f'使用者 {user.id} 完成工單 {work_order.code}，扣除 {consumed} 項物料庫存'
        )
        return {
            'success': True,
            'workOrderId': work_order.id,
            'workOrderCode': work_order.code,
            'consumedCount': consumed,
        }

    @staticmethod
    def get_work_order(work_order_id):
        work_order = WorkOrder.query.get(work_order_id)
        if work_order is None:
            raise NotFound(f'工單 {work_order_id} 不存在。')
        return work_order

    @staticmethod
    def delete_work_order(work_order_id, user):
        """刪除尚未開工的工單；進行中或已完工的工單不可刪除"""

        def work():
            work_order = WorkOrder.query.filter_by(id=work_order_id).with_for_update().first()
            if work_order is None:
                raise NotFound(f'工單 {work_order_id} 不存在。')
            if work_order.status in (WorkOrder.STATUS_IN_PROGRESS, WorkOrder.STATUS_COMPLETED):
                raise FailedPrecondition(f'無法刪除狀態為「{work_order.status}」的工單。')
            code = work_order.code
            db.session.delete(work_order)
            return code

        code = run_in_transaction(work, '刪除工單', actor=user, target=work_order_id)
        current_app.logger.info(f'使用者 {user.id} 刪除工單 {code}')
        return {'success': True, 'workOrderId': work_order_id, 'workOrderCode': code}
