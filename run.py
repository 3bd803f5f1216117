import os
from deerlab import create_app, db
from deerlab.models import (
    User, Role, Permission,
    Supplier, Material, Fragrance, ProductSeries, Product,
    Counter, InventoryMovement,
    PurchaseOrder, PurchaseOrderItem,
    CartItem, WorkOrder,
)

# 從環境變數取得設定模式
# 支援 FLASK_ENV 或 FLASK_CONFIG
config_name = os.getenv('FLASK_ENV') or os.getenv('FLASK_CONFIG') or 'default'
if config_name in ('development', 'dev'):
    config_name = 'development'
if config_name not in ('development', 'production', 'testing'):
    config_name = 'default'

app = create_app(config_name)

@app.shell_context_processor
def make_shell_context():
    """flask shell 自動匯入 db 與各模型"""
    return dict(
        db=db,
        app=app,
        User=User,
        Role=Role,
        Permission=Permission,
        Supplier=Supplier,
        Material=Material,
        Fragrance=Fragrance,
        ProductSeries=ProductSeries,
        Product=Product,
        Counter=Counter,
        InventoryMovement=InventoryMovement,
        PurchaseOrder=PurchaseOrder,
        PurchaseOrderItem=PurchaseOrderItem,
        CartItem=CartItem,
        WorkOrder=WorkOrder,
    )

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000)
