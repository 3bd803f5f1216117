"""流水號服務"""
from datetime import datetime
from deerlab.extensions import db
from deerlab.models.stock import Counter


# 產品類型名稱 -> 代碼
PRODUCT_TYPE_CODES = {
    '罐裝油(BOT)': 'BOT',
    '一代棉芯煙彈(OMP)': 'OMP',
    '一代陶瓷芯煙彈(OTP)': 'OTP',
    '五代陶瓷芯煙彈(FTP)': 'FTP',
    '其他(ETC)': 'ETC',
}


class SequenceService:
    """
    以 counters 表產生不重複的單號。
    必須在呼叫端的交易內使用：計數器的讀取、遞增與單據寫入一起提交，
    並行時由資料列鎖 (或唯一鍵衝突後整段重試) 保證不重號。
    """

    @staticmethod
    def today_str(now=None):
        return (now or datetime.utcnow()).strftime('%Y%m%d')

    @staticmethod
    def next_sequence(scope_key, count=1):
        """
        保留 count 個流水號，回傳遞增前的值 base；
        呼叫端使用 base + 1 ... base + count。
        """
        counter = Counter.query.filter_by(key=scope_key).with_for_update().first()
        if counter is None:
            counter = Counter(key=scope_key, count=0)
            db.session.add(counter)
        base = counter.count or 0
        counter.count = base + count
        db.session.flush()
        return base

    @staticmethod
    def format_code(prefix, date_str, number):
        """PO-20250115-001 這類的單號"""
        return f"{prefix}-{date_str}-{number:03d}"

    @staticmethod
    def next_dated_codes(domain, prefix, count=1, now=None):
        """依當天日期產生 count 個連號單號"""
        date_str = SequenceService.today_str(now)
        base = SequenceService.next_sequence(f"{domain}_{date_str}", count)
        return [SequenceService.format_code(prefix, date_str, base + i + 1) for i in range(count)]

    @staticmethod
    def next_product_code(series):
        """產品代號：{產品類型代碼}-{系列代號}-NNN，依系列計數"""
        base = SequenceService.next_sequence(f"product_{series.id}")
        type_code = PRODUCT_TYPE_CODES.get(series.product_type, 'ETC')
        return f"{type_code}-{series.code}-{base + 1:03d}"
