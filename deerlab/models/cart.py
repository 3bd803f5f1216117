from deerlab.extensions import db
from .base import BaseModel


class CartItem(BaseModel):
    """共用採購車項目 (送出時依供應商拆成採購單)"""
    __tablename__ = 'cart_items'

    item_type = db.Column(db.String(16))  # material / fragrance
    item_id = db.Column(db.Integer)
    code = db.Column(db.String(64))
    name = db.Column(db.String(128))
    unit = db.Column(db.String(16), default='')

    quantity = db.Column(db.Numeric(14, 3), default=1)
    price = db.Column(db.Numeric(14, 3), default=0)  # 加入時的單價 (查價失敗時的備援)

    supplier_id = db.Column(db.Integer)
    supplier_name = db.Column(db.String(128))
    notes = db.Column(db.Text)

    added_by_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'))
    added_by = db.relationship('User')

    @property
    def item_ref_path(self):
        collection = 'materials' if self.item_type == 'material' else 'fragrances'
        return f'{collection}/{self.item_id}'

    def to_dict(self):
        data = super().to_dict()
        data['item_ref_path'] = self.item_ref_path
        return data
