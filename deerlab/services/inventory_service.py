"""庫存流水服務 - 所有 current_stock 的變動都從這裡經過"""
from datetime import datetime
from decimal import Decimal
from flask import current_app
from sqlalchemy import func
from deerlab.extensions import db, cache
from deerlab.exceptions import InvalidArgument, NotFound
from deerlab.models.catalog import Material, Fragrance
from deerlab.models.stock import InventoryMovement
from deerlab.schemas import parse_payload, StocktakeRequest, AdjustInventoryRequest
from deerlab.utils.numbers import to_decimal, round_quantity, as_number
from deerlab.utils.transaction import run_in_transaction

ITEM_MODELS = {
    'materials': Material,
    'fragrances': Fragrance,
}

ITEM_TYPE_MODELS = {
    'material': Material,
    'fragrance': Fragrance,
}

OVERVIEW_CACHE_KEY = 'inventory_overview'


class InventoryService:

    @staticmethod
    def parse_item_ref(path):
        """'materials/12' -> (Material, 12)；格式不符回傳 (None, None)"""
        if not path or '/' not in path:
            return None, None
        parts = [p for p in str(path).strip().split('/') if p]
        if len(parts) < 2:
            return None, None
        model = ITEM_MODELS.get(parts[-2])
        try:
            item_id = int(parts[-1])
        except ValueError:
            return None, None
        return model, item_id

    @staticmethod
    def resolve_item_ref(path, lock=False):
        """依引用路徑取得物料或香精；lock=True 時加資料列鎖"""
        model, item_id = InventoryService.parse_item_ref(path)
        if model is None:
            return None
        return InventoryService.get_item(model, item_id, lock=lock)

    @staticmethod
    def get_item(model, item_id, lock=False):
        query = model.query.filter_by(id=item_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def find_item_by_code(item_type, code, lock=False):
        model = ITEM_TYPE_MODELS.get(item_type)
        if model is None or not code:
            return None
        query = model.query.filter_by(code=code)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def apply_stock_change(item, change_quantity, movement_type, actor, related=None, remark=None):
        """
        原子化庫存異動：更新 current_stock 並新增一筆流水。
        只在呼叫端的交易內執行 (不 commit)；item 應以 lock=True 讀取。
        變動量為 0 時不做任何事，回傳 None。
        """
        # 欄位只存到小數第三位，先取整再判斷是否為 0
        change = round_quantity(change_quantity)
        if change == 0:
            return None
        if movement_type not in InventoryMovement.TYPES:
            raise InvalidArgument(f'不支援的異動類型: {movement_type}')

        before = to_decimal(item.current_stock, Decimal(0))
        after = before + change

        item.current_stock = after
        item.last_stock_update = datetime.utcnow()

        movement = InventoryMovement(
            item_type=item.ITEM_TYPE,
            item_id=item.id,
            item_code=item.code,
            item_name=item.name,
            movement_type=movement_type,
            change_quantity=change,
            stock_before=before,
            stock_after=after,
            remark=remark,
            created_by_id=actor.id if actor is not None else None,
        )
        if related is not None:
            movement.related_doc_type = related.__tablename__
            movement.related_doc_id = related.id
            movement.related_doc_code = getattr(related, 'code', None)
        db.session.add(movement)
        return movement

    @staticmethod
    def invalidate_overview():
        cache.delete(OVERVIEW_CACHE_KEY)

    @staticmethod
    def perform_stocktake(items, user):
        """
        盤點調整 (全有或全無)
        :param items: [{'itemRefPath': 'materials/1', 'currentStock': 10, 'newStock': 8}, ...]
        """
        payload = parse_payload(StocktakeRequest, {'items': items})

        def work():
            adjusted = 0
            for entry in payload.items:
                item = InventoryService.resolve_item_ref(entry.item_ref_path, lock=True)
                if item is None:
                    raise NotFound(f'項目 {entry.item_ref_path} 不存在。')

                # 差異以交易內讀到的庫存為準，盤點單上的 currentStock 僅供參考
                recorded = to_decimal(item.current_stock, Decimal(0))
                change = entry.new_stock - recorded
                if change == 0:
                    continue

                InventoryService.apply_stock_change(
                    item, change, InventoryMovement.TYPE_STOCKTAKE, user,
                    remark=f'盤點調整 {recorded} -> {entry.new_stock}'
                )
                adjusted += 1
            return adjusted

        adjusted = run_in_transaction(
            work, '盤點調整', actor=user, target=[entry.item_ref_path for entry in payload.items]
        )
        InventoryService.invalidate_overview()
        current_app.logger.info(
            f'使用者 {user.id} 完成 {len(payload.items)} 個品項的盤點，實際調整 {adjusted} 項。'
        )
        return {'success': True, 'count': len(payload.items), 'adjustedCount': adjusted}

    @staticmethod
    def adjust_stock(item_ref_path, quantity_change, user, remarks=None):
        """手動調整單項庫存，調整後不可為負"""
        payload = parse_payload(AdjustInventoryRequest, {
            'itemRefPath': item_ref_path,
            'quantityChange': quantity_change,
            'remarks': remarks,
        })
        if payload.quantity_change == 0:
            raise InvalidArgument('調整數量不可為 0。')

        def work():
            item = InventoryService.resolve_item_ref(payload.item_ref_path, lock=True)
            if item is None:
                raise NotFound(f'項目 {payload.item_ref_path} 不存在。')
            current = to_decimal(item.current_stock, Decimal(0))
            if current + payload.quantity_change < 0:
                raise InvalidArgument(f'調整後庫存不能為負數 (目前 {current})。')
            movement = InventoryService.apply_stock_change(
                item, payload.quantity_change, InventoryMovement.TYPE_MANUAL, user,
                remark=payload.remarks or '手動調整庫存'
            )
            return movement.stock_after

        new_stock = run_in_transaction(work, '調整庫存', actor=user, target=payload.item_ref_path)
        InventoryService.invalidate_overview()
        current_app.logger.info(
            f'使用者 {user.id} 調整 {payload.item_ref_path} 庫存，變更量: {payload.quantity_change}'
        )
        return {'success': True, 'itemRefPath': payload.item_ref_path, 'newStock': as_number(new_stock)}

    @staticmethod
    def get_overview():
        """庫存總覽 (品項數、庫存成本、低庫存數)，結果快取"""
        overview = cache.get(OVERVIEW_CACHE_KEY)
        if overview is not None:
            return overview

        overview = {}
        total_low = 0
        for label, model in (('Materials', Material), ('Fragrances', Fragrance)):
            count = 0
            cost = Decimal(0)
            low = 0
            for item in model.query.all():
                stock = to_decimal(item.current_stock, Decimal(0))
                safety = to_decimal(item.safety_stock_level, Decimal(0))
                count += 1
                cost += stock * to_decimal(item.cost_per_unit, Decimal(0))
                if safety > 0 and stock <= safety:
                    low += 1
            overview[f'total{label}'] = count
            overview[f'total{label[:-1]}Cost'] = round(float(cost))
            overview[f'lowStock{label}'] = low
            total_low += low
        overview['totalLowStock'] = total_low

        cache.set(OVERVIEW_CACHE_KEY, overview, timeout=60)
        return overview

    @staticmethod
    def get_low_stock_items():
        """低於安全庫存的品項，依短缺量由大到小排序"""
        items = []
        for model in (Material, Fragrance):
            for item in model.query.filter(model.safety_stock_level > 0).all():
                stock = to_decimal(item.current_stock, Decimal(0))
                safety = to_decimal(item.safety_stock_level, Decimal(0))
                if stock <= safety:
                    items.append({
                        'itemRefPath': item.ref_path,
                        'type': item.ITEM_TYPE,
                        'code': item.code,
                        'name': item.name,
                        'unit': item.unit or '',
                        'currentStock': as_number(stock),
                        'safetyStockLevel': as_number(safety),
                        'shortage': as_number(safety - stock),
                        'costPerUnit': as_number(item.cost_per_unit or 0),
                    })
        items.sort(key=lambda x: x['shortage'], reverse=True)
        return items

    @staticmethod
    def list_movements(item_ref_path=None, movement_type=None, page=1, per_page=20):
        query = InventoryMovement.query
        if item_ref_path:
            model, item_id = InventoryService.parse_item_ref(item_ref_path)
            if model is None:
                raise InvalidArgument(f'無效的項目路徑: {item_ref_path}')
            query = query.filter_by(item_type=model.ITEM_TYPE, item_id=item_id)
        if movement_type:
            query = query.filter_by(movement_type=movement_type)
        return query.order_by(InventoryMovement.id.desc()).paginate(
            page=page, per_page=per_page, error_out=False
        )

    @staticmethod
    def ledger_balance(item):
        """某品項所有流水的變動總和 (稽核用)"""
        total = db.session.query(func.coalesce(func.sum(InventoryMovement.change_quantity), 0)).filter(
            InventoryMovement.item_type == item.ITEM_TYPE,
            InventoryMovement.item_id == item.id,
        ).scalar()
        return to_decimal(total, Decimal(0))
