"""採購管理模型"""
from decimal import Decimal
from deerlab.extensions import db
from .base import BaseModel


class PurchaseOrder(BaseModel):
    """採購單 (一個供應商一張)"""
    __tablename__ = 'purchase_orders'

    STATUS_FORECAST = '預報單'    # 預報 / 草稿
    STATUS_ORDERED = '已訂購'     # 已向供應商下單
    STATUS_RECEIVED = '已收貨'    # 已收貨入庫
    STATUS_CANCELLED = '已取消'   # 已取消

    STATUSES = (STATUS_FORECAST, STATUS_ORDERED, STATUS_RECEIVED, STATUS_CANCELLED)

    # 允許的狀態轉換；已收貨只能經由收貨入庫達成
    TRANSITIONS = {
        STATUS_FORECAST: (STATUS_ORDERED,),
        STATUS_ORDERED: (STATUS_RECEIVED, STATUS_CANCELLED),
        STATUS_RECEIVED: (),
        STATUS_CANCELLED: (),
    }

    code = db.Column(db.String(32), unique=True, index=True)  # PO-YYYYMMDD-NNN

    # 供應商可能在下單後被刪除，保留 id 與名稱快照
    supplier_id = db.Column(db.Integer, index=True)
    supplier_name = db.Column(db.String(128))

    status = db.Column(db.String(16), default=STATUS_FORECAST, index=True)
    additional_fees = db.Column(db.JSON)  # [{'name': '運費', 'amount': 120.0}]
    comments = db.Column(db.Text)

    created_by_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'))
    received_at = db.Column(db.DateTime)
    received_by_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'))

    created_by = db.relationship('User', foreign_keys=[created_by_id])
    received_by = db.relationship('User', foreign_keys=[received_by_id])
    items = db.relationship('PurchaseOrderItem', backref='order', cascade='all, delete-orphan',
                            order_by='PurchaseOrderItem.line_no')

    def can_transition_to(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, ())

    @property
    def total_amount(self):
        """品項小計加上附加費用"""
        total = sum([item.subtotal for item in self.items], Decimal(0))
        for fee in self.additional_fees or []:
            total += Decimal(str(fee.get('amount', 0)))
        return total

    def to_dict(self, with_items=True):
        data = super().to_dict()
        data['total_amount'] = float(self.total_amount)
        if with_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data


class PurchaseOrderItem(BaseModel):
    """採購單明細"""
    __tablename__ = 'purchase_order_items'

    order_id = db.Column(db.Integer, db.ForeignKey('purchase_orders.id'), index=True)
    line_no = db.Column(db.Integer, default=0)

    item_type = db.Column(db.String(16))  # material / fragrance
    item_id = db.Column(db.Integer)
    name = db.Column(db.String(128))
    code = db.Column(db.String(64))
    unit = db.Column(db.String(16), default='')

    quantity = db.Column(db.Numeric(14, 3), default=0)
    cost_per_unit = db.Column(db.Numeric(14, 3), default=0)  # 採購單價
    received_quantity = db.Column(db.Numeric(14, 3))          # 實收數量 (收貨後填入)

    @property
    def item_ref_path(self):
        collection = 'materials' if self.item_type == 'material' else 'fragrances'
        return f'{collection}/{self.item_id}'

    @property
    def subtotal(self):
        return (self.quantity or 0) * (self.cost_per_unit or 0)

    def to_dict(self):
        data = super().to_dict()
        data['item_ref_path'] = self.item_ref_path
        return data
