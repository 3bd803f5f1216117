"""
API 請求格式定義
所有請求在開啟交易前先經過這裡驗證，格式錯誤一律回 InvalidArgument
"""
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from deerlab.exceptions import InvalidArgument


class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class PurchaseItemPayload(RequestModel):
    id: int
    name: str = ''
    code: str = ''
    quantity: Decimal = Field(gt=0, decimal_places=3)
    unit: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    type: Optional[Literal['material', 'fragrance']] = None

    @property
    def item_type(self):
        # 未指定類型時沿用舊規則：有單位者為物料，否則為香精
        if self.type:
            return self.type
        return 'material' if self.unit else 'fragrance'


class AdditionalFee(RequestModel):
    name: str
    amount: Decimal = Field(ge=0)


class SupplierGroup(RequestModel):
    supplier_id: Optional[int] = Field(default=None, alias='supplierId')
    supplier_name: Optional[str] = Field(default=None, alias='supplierName')
    items: List[PurchaseItemPayload] = Field(min_length=1)
    comments: Optional[str] = None
    additional_fees: List[AdditionalFee] = Field(default_factory=list, alias='additionalFees')


class CreatePurchaseOrdersRequest(RequestModel):
    suppliers: List[SupplierGroup] = Field(min_length=1)


class UpdatePurchaseOrderStatusRequest(RequestModel):
    purchase_order_id: int = Field(alias='purchaseOrderId')
    new_status: str = Field(alias='newStatus', min_length=1)


class ReceiveItemPayload(RequestModel):
    item_ref_path: Optional[str] = Field(default=None, alias='itemRefPath')
    received_quantity: Decimal = Field(default=Decimal(0), alias='receivedQuantity', decimal_places=3)
    code: Optional[str] = None
    name: Optional[str] = None


class ReceivePurchaseOrderRequest(RequestModel):
    purchase_order_id: int = Field(alias='purchaseOrderId')
    items: Optional[List[ReceiveItemPayload]] = None


class StocktakeEntry(RequestModel):
    item_ref_path: str = Field(alias='itemRefPath', min_length=1)
    current_stock: Decimal = Field(alias='currentStock', decimal_places=3)
    new_stock: Decimal = Field(alias='newStock', ge=0, decimal_places=3)


class StocktakeRequest(RequestModel):
    items: List[StocktakeEntry] = Field(min_length=1)


class AdjustInventoryRequest(RequestModel):
    item_ref_path: str = Field(alias='itemRefPath', min_length=1)
    quantity_change: Decimal = Field(alias='quantityChange', decimal_places=3)
    remarks: Optional[str] = None


class CreateWorkOrderRequest(RequestModel):
    product_id: int = Field(alias='productId')
    target_quantity: Decimal = Field(alias='targetQuantity', gt=0, decimal_places=3)


class UpdateWorkOrderRequest(RequestModel):
    status: Optional[str] = None
    qc_status: Optional[str] = Field(default=None, alias='qcStatus')
    target_quantity: Optional[Decimal] = Field(default=None, alias='targetQuantity', gt=0, decimal_places=3)
    actual_quantity: Optional[Decimal] = Field(default=None, alias='actualQuantity', ge=0, decimal_places=3)
    notes: Optional[str] = None


class ConsumedMaterial(RequestModel):
    item_ref_path: str = Field(alias='itemRefPath', min_length=1)
    consumed_quantity: Decimal = Field(alias='consumedQuantity', gt=0, decimal_places=3)


class CompleteWorkOrderRequest(RequestModel):
    actual_quantity: Decimal = Field(alias='actualQuantity', ge=0, decimal_places=3)
    consumed_materials: List[ConsumedMaterial] = Field(alias='consumedMaterials', min_length=1)


class ProductionPlan(RequestModel):
    product_id: int = Field(alias='productId')
    target_quantity: Decimal = Field(alias='targetQuantity', gt=0, decimal_places=3)


class CapacityRequest(RequestModel):
    plans: List[ProductionPlan] = Field(min_length=1)


class AddCartItemRequest(RequestModel):
    type: Literal['material', 'fragrance']
    item_id: int = Field(alias='itemId')
    quantity: Decimal = Field(default=Decimal(1), gt=0, decimal_places=3)
    supplier_id: Optional[int] = Field(default=None, alias='supplierId')
    notes: Optional[str] = None


class UpdateCartItemRequest(RequestModel):
    quantity: Optional[Decimal] = Field(default=None, gt=0, decimal_places=3)
    notes: Optional[str] = None


class SubmitCartRequest(RequestModel):
    cart_item_ids: Optional[List[int]] = Field(default=None, alias='cartItemIds')

    @field_validator('cart_item_ids')
    @classmethod
    def _dedupe(cls, value):
        if value is None:
            return value
        return list(dict.fromkeys(value))


class LoginRequest(RequestModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    remember_me: bool = Field(default=False, alias='rememberMe')


def parse_payload(schema, data):
    """以 schema 驗證請求資料，失敗時轉為 InvalidArgument"""
    try:
        return schema.model_validate(data or {})
    except ValidationError as e:
        details = [
            {'field': '.'.join(str(p) for p in err['loc']), 'reason': err['msg']}
            for err in e.errors()
        ]
        raise InvalidArgument('缺少或無效的參數。', payload={'details': details}) from e
