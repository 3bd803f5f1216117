"""工單模型"""
from deerlab.extensions import db
from .base import BaseModel


class WorkOrder(BaseModel):
    """
    生產工單
    bill_of_materials 與 product_snapshot 在建立時凍結，之後修改產品配方不影響既有工單
    """
    __tablename__ = 'work_orders'

    STATUS_UNCONFIRMED = '未確認'
    STATUS_FORECAST = '預報'
    STATUS_IN_PROGRESS = '進行'
    STATUS_COMPLETED = '完工'

    STATUSES = (STATUS_UNCONFIRMED, STATUS_FORECAST, STATUS_IN_PROGRESS, STATUS_COMPLETED)
    COMPLETABLE_STATUSES = (STATUS_FORECAST, STATUS_IN_PROGRESS)

    QC_PENDING = '未檢驗'
    QC_STATUSES = (QC_PENDING, '檢驗中', '檢驗通過', '檢驗失敗')

    code = db.Column(db.String(32), unique=True, index=True)  # WO-YYYYMMDD-NNN
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'))

    product_snapshot = db.Column(db.JSON)
    bill_of_materials = db.Column(db.JSON)  # [{itemRef, name, code, unit, quantity}]

    target_quantity = db.Column(db.Numeric(14, 3))
    actual_quantity = db.Column(db.Numeric(14, 3), default=0)
    status = db.Column(db.String(16), default=STATUS_UNCONFIRMED, index=True)
    qc_status = db.Column(db.String(16), default=QC_PENDING)
    notes = db.Column(db.Text, default='')

    created_by_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'))
    completed_at = db.Column(db.DateTime)
    completed_by_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'))

    product = db.relationship('Product')
    created_by = db.relationship('User', foreign_keys=[created_by_id])
    completed_by = db.relationship('User', foreign_keys=[completed_by_id])
