import click
import random
from decimal import Decimal
from flask.cli import with_appcontext
from deerlab.extensions import db
from deerlab.models.auth import User, Role, Permission
from deerlab.models.catalog import Supplier, Material, Fragrance, ProductSeries, Product
from deerlab.models.purchase import PurchaseOrder
from deerlab.models.production import WorkOrder
from deerlab.models.stock import InventoryMovement
from deerlab.models.cart import CartItem
from deerlab.services.catalog_service import CatalogService
from deerlab.services.inventory_service import InventoryService
from deerlab.utils.fake_gen import fake


@click.command('status')
@with_appcontext
def status():
    """查看目前資料庫中的資料統計"""
    click.echo(click.style('DeerLab 資料庫狀態:', fg='cyan', bold=True))

    try:
        u_count = User.query.count()
        m_count = Material.query.count()
        f_count = Fragrance.query.count()
        p_count = Product.query.count()
        po_count = PurchaseOrder.query.count()
        wo_count = WorkOrder.query.count()
        c_count = CartItem.query.count()
        l_count = InventoryMovement.query.count()

        click.echo(f" - 使用者 (Users): \t{u_count}")
        click.echo(f" - 物料 (Materials): \t{m_count}")
        click.echo(f" - 香精 (Fragrances): \t{f_count}")
        click.echo(f" - 產品 (Products): \t{p_count}")
        click.echo(f" - 採購單 (Orders): \t{po_count}")
        click.echo(f" - 工單 (WorkOrders): \t{wo_count}")
        click.echo(f" - 採購車 (Cart): \t{c_count}")
        click.echo(f" - 庫存流水 (Logs): \t{l_count}")

        if u_count > 0:
            click.echo(click.style('資料庫連線正常，資料已存在。', fg='green'))
        else:
            click.echo(click.style('資料庫為空，請執行 flask forge 產生資料。', fg='yellow'))

    except Exception as e:
        click.echo(click.style(f'資料庫讀取失敗: {str(e)}', fg='red'))
        click.echo("請確認是否已執行 'flask db upgrade'")


@click.command('forge')
@click.option('--scale', default=1, help='資料規模倍數 (預設 1 倍)')
@with_appcontext
def forge(scale):
    """
    初始化並填入示範資料。
    警告：會清除資料庫中的現有資料！
    """
    click.echo(click.style(f'初始化 DeerLab 示範資料 (規模: {scale}x)...', fg='cyan', bold=True))

    db.drop_all()
    db.create_all()

    click.echo('正在建立帳號與權限...')
    admin = init_auth()

    click.echo('正在建立供應商與物料...')
    materials, fragrances = init_catalog(admin, scale)

    click.echo('正在建立產品系列與產品...')
    init_products(admin, materials, fragrances, scale)

    click.echo(click.style('DeerLab 示範資料建立完成！', fg='green', bold=True))
    click.echo("管理員帳號: admin@deerlab.local / 密碼: admin")


def init_auth():
    """建立權限、角色與使用者"""
    perms = {}
    for name in (Permission.PURCHASE_MANAGE, Permission.PURCHASE_RECEIVE,
                 Permission.INVENTORY_ADJUST, Permission.INVENTORY_STOCKTAKE,
                 Permission.WORK_ORDER_MANAGE):
        perm = Permission(name=name)
        db.session.add(perm)
        perms[name] = perm

    admin_role = Role(name='Admin', is_admin=True)
    buyer_role = Role(name='Buyer', permissions=[
        perms[Permission.PURCHASE_MANAGE], perms[Permission.PURCHASE_RECEIVE]
    ])
    keeper_role = Role(name='Warehouse', permissions=[
        perms[Permission.PURCHASE_RECEIVE], perms[Permission.INVENTORY_ADJUST],
        perms[Permission.INVENTORY_STOCKTAKE]
    ])
    db.session.add_all([admin_role, buyer_role, keeper_role])

    admin = User(username='admin', email='admin@deerlab.local', password='admin', role=admin_role)
    db.session.add(admin)
    for i, role in enumerate((buyer_role, keeper_role)):
        db.session.add(User(
            username=fake.name(),
            email=f"staff{i}@deerlab.local",
            employee_id=f"E{i + 1:03d}",
            password='password',
            role=role,
        ))
    db.session.commit()
    return admin


def init_catalog(admin, scale=1):
    """供應商、系統物料 (PG / VG / 尼古丁)、一般物料與香精，期初庫存寫入流水"""
    suppliers = []
    for _ in range(3 * scale):
        s = Supplier(name=fake.supplier_company(), contact_person=fake.name(), phone=fake.phone_number())
        db.session.add(s)
        suppliers.append(s)
    db.session.flush()

    materials = [
        Material(code='UV3404503', name='PG丙二醇', category='pg', unit='g', cost_per_unit=Decimal('0.12')),
        Material(code='UV3400698', name='VG甘油', category='vg', unit='g', cost_per_unit=Decimal('0.10')),
        Material(code='UV3405520', name='丁鹽', category='nicotine', unit='g', cost_per_unit=Decimal('2.5')),
    ]
    for i in range(8 * scale):
        name, unit, category = fake.supply_item()
        materials.append(Material(
            code=f"MAT-{i + 1:04d}",
            name=f"{name} {i + 1}",
            unit=unit,
            category=category,
            cost_per_unit=Decimal(random.randint(1, 30)),
            safety_stock_level=Decimal(random.choice([0, 100, 500])),
        ))
    for m in materials:
        m.supplier = random.choice(suppliers)
        db.session.add(m)

    fragrances = []
    for i in range(6 * scale):
        pg = random.choice([30, 40, 50])
        f = Fragrance(
            code=f"FRG-{i + 1:04d}",
            name=fake.fragrance_name(),
            unit='g',
            percentage=Decimal(random.choice([5, 8, 10, 12])),
            pg_ratio=Decimal(pg),
            vg_ratio=Decimal(100 - pg - 20),
            cost_per_unit=Decimal(random.randint(3, 12)),
            safety_stock_level=Decimal(200),
            supplier=random.choice(suppliers),
        )
        db.session.add(f)
        fragrances.append(f)
    db.session.flush()

    for item in materials + fragrances:
        InventoryService.apply_stock_change(
            item, fake.stock_quantity(0, 5000), InventoryMovement.TYPE_MANUAL, admin, remark='期初庫存'
        )
    db.session.commit()
    click.echo(f'  已建立 {len(suppliers)} 個供應商、{len(materials)} 項物料、{len(fragrances)} 項香精')
    return materials, fragrances


def init_products(admin, materials, fragrances, scale=1):
    """產品代號由系列流水號產生"""
    general = [m for m in materials if m.category not in ('pg', 'vg', 'nicotine')]
    series_list = []
    for code, name, product_type in (('DL', '鹿實驗室', '罐裝油(BOT)'), ('FT', '五代系列', '五代陶瓷芯煙彈(FTP)')):
        series = ProductSeries(code=code, name=name, product_type=product_type,
                               common_materials=random.sample(general, k=min(2, len(general))))
        db.session.add(series)
        series_list.append(series)
    db.session.commit()

    count = 0
    for _ in range(4 * scale):
        series = random.choice(series_list)
        fragrance = random.choice(fragrances)
        CatalogService.create_product(
            series.id,
            f"{fragrance.name} {random.choice([20, 30, 35])}mg",
            fragrance_id=fragrance.id,
            nicotine_mg=random.choice([0, 20, 30, 35]),
            specific_material_ids=[random.choice(general).id],
            user=admin,
        )
        count += 1
    click.echo(f'  已建立 {len(series_list)} 個系列、{count} 個產品')
