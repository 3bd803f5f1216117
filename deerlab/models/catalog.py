"""物料、香精、供應商與產品定義"""
from deerlab.extensions import db
from .base import BaseModel

# 多對多：產品 <-> 專屬物料
product_specific_materials = db.Table('product_specific_materials',
    db.Column('product_id', db.Integer, db.ForeignKey('products.id'), primary_key=True),
    db.Column('material_id', db.Integer, db.ForeignKey('materials.id'), primary_key=True)
)

# 多對多：產品系列 <-> 通用物料
series_common_materials = db.Table('series_common_materials',
    db.Column('series_id', db.Integer, db.ForeignKey('product_series.id'), primary_key=True),
    db.Column('material_id', db.Integer, db.ForeignKey('materials.id'), primary_key=True)
)


class Supplier(BaseModel):
    """供應商"""
    __tablename__ = 'suppliers'

    name = db.Column(db.String(128), index=True)
    contact_person = db.Column(db.String(64))
    phone = db.Column(db.String(32))
    notes = db.Column(db.Text)


class StockItemMixin:
    """
    庫存品項共用欄位 (物料 / 香精)
    current_stock 只能經由庫存流水 (InventoryService.apply_stock_change) 變動
    """
    ITEM_TYPE = None
    COLLECTION = None

    code = db.Column(db.String(64), unique=True, index=True)
    name = db.Column(db.String(128), index=True)
    unit = db.Column(db.String(16))

    current_stock = db.Column(db.Numeric(14, 3), default=0, nullable=False)
    cost_per_unit = db.Column(db.Numeric(14, 3), default=0)
    safety_stock_level = db.Column(db.Numeric(14, 3), default=0)  # 安全庫存 (低於即預警)
    last_stock_update = db.Column(db.DateTime)

    @property
    def ref_path(self):
        return f'{self.COLLECTION}/{self.id}'


class Material(StockItemMixin, BaseModel):
    """物料"""
    __tablename__ = 'materials'
    ITEM_TYPE = 'material'
    COLLECTION = 'materials'

    category = db.Column(db.String(64), index=True)
    sub_category = db.Column(db.String(64))

    supplier_id = db.Column(db.Integer, db.ForeignKey('suppliers.id'))
    supplier = db.relationship('Supplier', backref='materials')


class Fragrance(StockItemMixin, BaseModel):
    """香精"""
    __tablename__ = 'fragrances'
    ITEM_TYPE = 'fragrance'
    COLLECTION = 'fragrances'

    percentage = db.Column(db.Numeric(8, 3), default=0)  # 香精比例 (%)
    pg_ratio = db.Column(db.Numeric(8, 3), default=0)    # PG 比例 (%)
    vg_ratio = db.Column(db.Numeric(8, 3), default=0)    # VG 比例 (%)
    core_type = db.Column(db.String(32))

    supplier_id = db.Column(db.Integer, db.ForeignKey('suppliers.id'))
    supplier = db.relationship('Supplier', backref='fragrances')


class ProductSeries(BaseModel):
    """產品系列"""
    __tablename__ = 'product_series'

    code = db.Column(db.String(32), index=True)
    name = db.Column(db.String(128))
    product_type = db.Column(db.String(64))  # 例如: '罐裝油(BOT)'

    common_materials = db.relationship('Material', secondary=series_common_materials,
                                       order_by='Material.id')
    products = db.relationship('Product', backref='series', lazy='dynamic')


class Product(BaseModel):
    """產品"""
    __tablename__ = 'products'

    code = db.Column(db.String(64), unique=True, index=True)
    name = db.Column(db.String(128), index=True)
    nicotine_mg = db.Column(db.Numeric(8, 3), default=0)
    status = db.Column(db.String(16), default='啟用')

    series_id = db.Column(db.Integer, db.ForeignKey('product_series.id'))
    fragrance_id = db.Column(db.Integer, db.ForeignKey('fragrances.id'))

    fragrance = db.relationship('Fragrance')
    specific_materials = db.relationship('Material', secondary=product_specific_materials,
                                         order_by='Material.id')
