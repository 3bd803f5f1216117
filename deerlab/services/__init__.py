from .sequence_service import SequenceService
from .bom_service import BomService
from .inventory_service import InventoryService
from .purchase_service import PurchaseService
from .cart_service import CartService
from .work_order_service import WorkOrderService
from .catalog_service import CatalogService
