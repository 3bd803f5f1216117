from datetime import datetime

from deerlab.extensions import db
from deerlab.models import Counter, ProductSeries
from deerlab.services.sequence_service import SequenceService


def test_missing_counter_starts_at_zero(app):
    assert SequenceService.next_sequence("purchaseOrders_20250115") == 0
    assert SequenceService.next_sequence("purchaseOrders_20250115") == 1
    db.session.commit()

    counter = db.session.get(Counter, "purchaseOrders_20250115")
    assert counter.count == 2


def test_bulk_reservation_returns_first_of_range(app):
    assert SequenceService.next_sequence("workOrders_20250115", 3) == 0
    assert SequenceService.next_sequence("workOrders_20250115", 2) == 3
    assert SequenceService.next_sequence("workOrders_20250115") == 5


def test_dated_codes_are_consecutive(app):
    day = datetime(2025, 1, 15, 23, 59)
    codes = SequenceService.next_dated_codes("purchaseOrders", "PO", 3, now=day)
    assert codes == ["PO-20250115-001", "PO-20250115-002", "PO-20250115-003"]

    more = SequenceService.next_dated_codes("purchaseOrders", "PO", 1, now=day)
    assert more == ["PO-20250115-004"]

    # 不同日期使用不同計數器
    next_day = SequenceService.next_dated_codes("purchaseOrders", "PO", 1, now=datetime(2025, 1, 16))
    assert next_day == ["PO-20250116-001"]


def test_format_code_grows_past_three_digits(app):
    assert SequenceService.format_code("WO", "20250115", 7) == "WO-20250115-007"
    assert SequenceService.format_code("WO", "20250115", 1000) == "WO-20250115-1000"


def test_product_code_uses_series_counter(app):
    bot = ProductSeries(code="DL", name="鹿實驗室", product_type="罐裝油(BOT)")
    other = ProductSeries(code="XX", name="試作", product_type="未知類型")
    db.session.add_all([bot, other])
    db.session.flush()

    assert SequenceService.next_product_code(bot) == "BOT-DL-001"
    assert SequenceService.next_product_code(bot) == "BOT-DL-002"
    assert SequenceService.next_product_code(other) == "ETC-XX-001"
    assert db.session.get(Counter, f"product_{bot.id}").count == 2
