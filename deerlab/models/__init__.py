# 依照相依順序匯入
from .base import BaseModel
from .auth import User, Role, Permission
from .catalog import Supplier, Material, Fragrance, ProductSeries, Product

# 庫存
from .stock import Counter, InventoryMovement

# 採購管理
from .purchase import PurchaseOrder, PurchaseOrderItem
from .cart import CartItem

# 生產
from .production import WorkOrder
