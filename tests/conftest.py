import os
import sys
from decimal import Decimal
from types import SimpleNamespace

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from deerlab import create_app
from deerlab.extensions import db
from deerlab.models import (
    Fragrance,
    Material,
    Permission,
    Product,
    ProductSeries,
    Role,
    Supplier,
    User,
)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def admin(app):
    role = Role(name="Admin", is_admin=True)
    user = User(username="admin", email="admin@deerlab.local", password="admin", role=role)
    db.session.add_all([role, user])
    db.session.commit()
    return user


@pytest.fixture
def clerk(app):
    """只有收貨權限的倉管人員"""
    perm = Permission(name=Permission.PURCHASE_RECEIVE)
    role = Role(name="Warehouse", permissions=[perm])
    user = User(username="clerk", email="clerk@deerlab.local", password="secret", role=role)
    db.session.add_all([perm, role, user])
    db.session.commit()
    return user


@pytest.fixture
def client(app, admin):
    client = app.test_client()
    response = client.post(
        "/auth/login",
        json={"email": "admin@deerlab.local", "password": "admin"},
    )
    assert response.status_code == 200
    return client


@pytest.fixture
def catalog(app):
    """
    兩個供應商、PG / VG / 尼古丁系統物料、一般物料與香精，
    以及一個使用香精 F (10% / PG 5 / VG 3)、尼古丁 20mg、專屬物料玻璃瓶的產品
    """
    north = Supplier(name="北方香料")
    south = Supplier(name="南方包材")
    db.session.add_all([north, south])
    db.session.flush()

    pg = Material(code="UV3404503", name="PG丙二醇", category="pg", unit="g",
                  current_stock=Decimal("1000"), cost_per_unit=Decimal("0.5"), supplier=north)
    vg = Material(code="UV3400698", name="VG甘油", category="vg", unit="g",
                  current_stock=Decimal("1000"), cost_per_unit=Decimal("0.4"), supplier=north)
    nicotine = Material(code="UV3405520", name="丁鹽", category="nicotine", unit="g",
                        current_stock=Decimal("100"), cost_per_unit=Decimal("3"), supplier=south)
    bottle = Material(code="MAT-0001", name="玻璃瓶", unit="個",
                      current_stock=Decimal("50"), cost_per_unit=Decimal("2"),
                      safety_stock_level=Decimal("100"), supplier=south)
    label = Material(code="MAT-0002", name="標籤貼紙", unit="張",
                     current_stock=Decimal("480"), cost_per_unit=Decimal("0.2"),
                     safety_stock_level=Decimal("500"), supplier=south)
    fragrance = Fragrance(code="FRG-0001", name="芒果冰沙", unit="g",
                          percentage=Decimal("10"), pg_ratio=Decimal("5"), vg_ratio=Decimal("3"),
                          current_stock=Decimal("500"), cost_per_unit=Decimal("8"), supplier=north)
    db.session.add_all([pg, vg, nicotine, bottle, label, fragrance])
    db.session.flush()

    series = ProductSeries(code="DL", name="鹿實驗室", product_type="罐裝油(BOT)")
    db.session.add(series)
    db.session.flush()

    product = Product(code="BOT-DL-900", name="芒果冰沙 20mg", nicotine_mg=Decimal("20"),
                      series_id=series.id, fragrance_id=fragrance.id, specific_materials=[bottle])
    db.session.add(product)
    db.session.commit()

    return SimpleNamespace(
        north=north,
        south=south,
        pg=pg,
        vg=vg,
        nicotine=nicotine,
        bottle=bottle,
        label=label,
        fragrance=fragrance,
        series=series,
        product=product,
    )
