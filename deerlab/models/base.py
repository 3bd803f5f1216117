from datetime import datetime
from decimal import Decimal
from deerlab.extensions import db

class BaseModel(db.Model):
    """
    DeerLab 模型基類
    包含：ID 主鍵, 建立時間, 更新時間, 序列化方法
    """
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def save(self):
        """儲存到資料庫"""
        db.session.add(self)
        db.session.commit()

    def to_dict(self):
        """
        通用序列化方法：將模型轉換為字典，便於 API 回傳 JSON。
        過濾以 '_' 開頭的私有欄位，Decimal 轉為 float。
        """
        data = {}
        for c in self.__table__.columns:
            if c.name.startswith('_'):
                continue
            val = getattr(self, c.name)
            if isinstance(val, datetime):
                data[c.name] = val.isoformat()
            elif isinstance(val, Decimal):
                data[c.name] = float(val)
            else:
                data[c.name] = val
        return data
