"""數量與金額的定點數處理"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

THREE_PLACES = Decimal('0.001')


def to_decimal(value, default=None):
    """轉為 Decimal；None 或無法解析時回傳 default"""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def round_quantity(value):
    """四捨五入到小數第三位"""
    return to_decimal(value, Decimal(0)).quantize(THREE_PLACES, rounding=ROUND_HALF_UP)


def as_number(value):
    """JSON 輸出用：Decimal 轉 float，整數值保持 float 形式"""
    if value is None:
        return None
    return float(value)
