import re
import threading

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from config import TestingConfig, config
from deerlab import create_app
from deerlab.exceptions import AlreadyExists, Internal, NotFound
from deerlab.extensions import db
from deerlab.models import Material, PurchaseOrder, Role, Supplier, User
from deerlab.models.stock import Counter
from deerlab.services.purchase_service import PurchaseService
from deerlab.utils.transaction import run_in_transaction


def counter_collision():
    return IntegrityError("INSERT INTO counters", {}, Exception("UNIQUE constraint failed: counters.key"))


def test_contention_is_retried_until_success(app):
    calls = []

    def work():
        calls.append(1)
        db.session.add(Supplier(name=f"供應商 {len(calls)}"))
        db.session.flush()
        if len(calls) < 3:
            raise counter_collision()
        return "ok"

    assert run_in_transaction(work, "測試交易") == "ok"
    assert len(calls) == 3
    # 失敗的嘗試已整批 rollback
    assert [s.name for s in Supplier.query.all()] == ["供應商 3"]


def test_lock_timeout_surfaces_internal_after_max_attempts(app):
    app.config["TRANSACTION_MAX_ATTEMPTS"] = 3
    calls = []

    def work():
        calls.append(1)
        db.session.add(Supplier(name="不會寫入"))
        db.session.flush()
        raise OperationalError("UPDATE counters", {}, Exception("database is locked"))

    with pytest.raises(Internal):
        run_in_transaction(work, "測試交易")
    assert len(calls) == 3
    assert Supplier.query.count() == 0


def test_persistent_code_collision_surfaces_already_exists(app):
    app.config["TRANSACTION_MAX_ATTEMPTS"] = 2
    calls = []

    def work():
        calls.append(1)
        raise IntegrityError("INSERT INTO products", {}, Exception("UNIQUE constraint failed: products.code"))

    with pytest.raises(AlreadyExists):
        run_in_transaction(work, "建立產品")
    assert len(calls) == 2


def test_duplicate_data_is_not_retried(app):
    calls = []

    def work():
        calls.append(1)
        raise IntegrityError("INSERT INTO auth_users", {}, Exception("UNIQUE constraint failed: auth_users.email"))

    with pytest.raises(AlreadyExists):
        run_in_transaction(work, "建立使用者")
    assert len(calls) == 1


def test_business_errors_are_not_retried(app):
    calls = []

    def work():
        calls.append(1)
        raise NotFound("採購單 9 不存在。")

    with pytest.raises(NotFound):
        run_in_transaction(work, "測試交易")
    assert len(calls) == 1


def test_unexpected_errors_become_internal(app):
    def work():
        raise RuntimeError("boom")

    with pytest.raises(Internal):
        run_in_transaction(work, "測試交易")


@pytest.fixture
def file_app(tmp_path, monkeypatch):
    """多執行緒需要共用同一個檔案資料庫"""

    class FileBackedConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'deerlab.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30, "check_same_thread": False}}
        TRANSACTION_MAX_ATTEMPTS = 10

    monkeypatch.setitem(config, "file", FileBackedConfig)
    app = create_app("file")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def test_concurrent_creates_get_distinct_codes(file_app):
    role = Role(name="Admin", is_admin=True)
    user = User(username="admin", email="admin@deerlab.local", password="admin", role=role)
    supplier = Supplier(name="北方香料")
    material = Material(code="UV3404503", name="PG丙二醇", category="pg", unit="g", supplier=supplier)
    db.session.add_all([role, user, supplier, material])
    db.session.commit()
    user_id = user.id
    suppliers = [{
        "supplierId": supplier.id,
        "items": [{"id": material.id, "name": "PG丙二醇", "code": "UV3404503", "quantity": 10, "unit": "g"}],
    }]

    workers = 4
    barrier = threading.Barrier(workers, timeout=30)
    codes, errors = [], []

    def create():
        with file_app.app_context():
            try:
                actor = db.session.get(User, user_id)
                barrier.wait()
                result = PurchaseService.create_purchase_orders(suppliers, actor)
                codes.extend(o["code"] for o in result["purchaseOrders"])
            except Exception as e:
                errors.append(e)

    threads = [threading.Thread(target=create) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(codes) == workers
    assert len(set(codes)) == workers
    assert sorted(code[-3:] for code in codes) == ["001", "002", "003", "004"]
    assert all(re.fullmatch(r"PO-\d{8}-\d{3}", code) for code in codes)

    db.session.expire_all()
    assert PurchaseOrder.query.count() == workers
    assert Counter.query.one().count == workers
