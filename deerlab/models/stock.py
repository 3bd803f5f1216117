from datetime import datetime
from sqlalchemy import event
from deerlab.extensions import db
from .base import BaseModel


class Counter(db.Model):
    """
    流水號計數器
    key 格式: {domain}_{scope}，例如 purchaseOrders_20250115、product_3
    """
    __tablename__ = 'counters'

    key = db.Column(db.String(64), primary_key=True)
    count = db.Column(db.Integer, default=0, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class InventoryMovement(BaseModel):
    """
    庫存異動流水 (核心表)
    每一次非零的庫存變動對應一筆，與庫存更新在同一交易內寫入；只增不改
    """
    __tablename__ = 'inventory_movements'

    TYPE_PURCHASE_INBOUND = 'purchase_inbound'           # 採購入庫
    TYPE_STOCKTAKE = 'stocktake_adjustment'              # 盤點調整
    TYPE_MANUAL = 'manual_adjustment'                    # 手動調整
    TYPE_WORK_ORDER = 'work_order_consumption'           # 工單耗用

    TYPES = (TYPE_PURCHASE_INBOUND, TYPE_STOCKTAKE, TYPE_MANUAL, TYPE_WORK_ORDER)

    item_type = db.Column(db.String(16), index=True)  # material / fragrance
    item_id = db.Column(db.Integer, index=True)
    item_code = db.Column(db.String(64))
    item_name = db.Column(db.String(128))

    movement_type = db.Column(db.String(32), index=True)
    change_quantity = db.Column(db.Numeric(14, 3), nullable=False)  # 變動數量 (+10, -5)
    stock_before = db.Column(db.Numeric(14, 3))
    stock_after = db.Column(db.Numeric(14, 3))

    # 關聯單據 (採購單、工單)
    related_doc_type = db.Column(db.String(32))
    related_doc_id = db.Column(db.Integer)
    related_doc_code = db.Column(db.String(32), index=True)

    remark = db.Column(db.String(255))

    created_by_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'))
    created_by = db.relationship('User')

    @property
    def item_ref_path(self):
        collection = 'materials' if self.item_type == 'material' else 'fragrances'
        return f'{collection}/{self.item_id}'

    def to_dict(self):
        data = super().to_dict()
        data['item_ref_path'] = self.item_ref_path
        return data


@event.listens_for(InventoryMovement, 'before_update')
def _movement_is_immutable(mapper, connection, target):
    raise ValueError('庫存異動紀錄不可修改')


@event.listens_for(InventoryMovement, 'before_delete')
def _movement_cannot_be_deleted(mapper, connection, target):
    raise ValueError('庫存異動紀錄不可刪除')
