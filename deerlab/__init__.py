import logging
import colorlog
from flask import Flask, jsonify, request
from flask_login import current_user
from werkzeug.exceptions import HTTPException
from config import config
from deerlab.extensions import db, migrate, login_manager, cache
from deerlab.exceptions import DeerLabException

from deerlab import commands


def create_app(config_name='default'):
    """DeerLab 應用工廠函式"""
    app = Flask(__name__)

    # 1. 載入設定
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)
    # JSON 回應中文不轉義
    app.json.ensure_ascii = False

    # 2. 初始化擴充
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    cache.init_app(app)

    # 3. 設定日誌
    configure_logging(app)

    # 4. 註冊藍圖
    register_blueprints(app)

    # 5. 註冊全域錯誤處理
    register_error_handlers(app)

    # 6. 註冊 CLI 指令
    register_commands(app)

    # 7. 正式環境自動初始化資料庫
    auto_init_database(app)

    return app


def auto_init_database(app):
    """正式環境首次啟動時建立資料表與管理員帳號"""
    import os
    if app.testing:
        return
    flask_env = os.environ.get('FLASK_ENV', '')
    if flask_env != 'production' and not os.environ.get('DATABASE_URL'):
        return

    with app.app_context():
        from deerlab.models.auth import User, Role
        from sqlalchemy import inspect
        try:
            tables = inspect(db.engine).get_table_names()
            if 'auth_users' not in tables:
                app.logger.info('首次啟動，正在建立資料表...')
                db.create_all()

            if User.query.filter_by(email='admin@deerlab.local').count() == 0:
                admin_role = Role.query.filter_by(name='Admin').first()
                if not admin_role:
                    admin_role = Role(name='Admin', is_admin=True)
                    db.session.add(admin_role)
                admin = User(
                    username='admin',
                    email='admin@deerlab.local',
                    password=os.environ.get('DEERLAB_ADMIN_PASSWORD', 'admin'),
                    role=admin_role,
                )
                db.session.add(admin)
                db.session.commit()
                app.logger.info('管理員建立完成: admin@deerlab.local')
        except Exception:
            db.session.rollback()
            app.logger.exception('資料庫初始化失敗')
            raise


def register_blueprints(app):
    """註冊所有業務模組藍圖"""
    # 認證
    from deerlab.blueprints.auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    # 採購單
    from deerlab.blueprints.purchase import purchase_bp
    app.register_blueprint(purchase_bp, url_prefix='/purchase-orders')

    # 庫存 (盤點、調整、報表)
    from deerlab.blueprints.inventory import inventory_bp
    app.register_blueprint(inventory_bp, url_prefix='/inventory')

    # 工單
    from deerlab.blueprints.work_orders import work_orders_bp
    app.register_blueprint(work_orders_bp, url_prefix='/work-orders')

    # 採購車
    from deerlab.blueprints.cart import cart_bp
    app.register_blueprint(cart_bp, url_prefix='/cart')


def register_error_handlers(app):
    @app.errorhandler(DeerLabException)
    def handle_deerlab_exception(e):
        # 記錄操作者與目標，再轉成對外的錯誤格式
        actor = current_user.get_id() or '-'
        target = request.view_args or '-'
        line = f'[使用者 {actor}] [對象 {target}] {request.method} {request.path} {e.error}: {e.message}'
        if e.code >= 500:
            app.logger.error(line)
        else:
            app.logger.warning(line)
        return jsonify(e.to_dict()), e.code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({
            'success': False,
            'code': e.code,
            'error': e.name.lower().replace(' ', '-'),
            'message': e.description,
        }), e.code

    @app.errorhandler(500)
    def internal_server_error(e):
        return jsonify({
            'success': False,
            'code': 500,
            'error': 'internal',
            'message': '系統發生未知錯誤。',
        }), 500


def register_commands(app):
    """註冊 Flask CLI 指令"""
    app.cli.add_command(commands.forge)
    app.cli.add_command(commands.status)


def configure_logging(app):
    """彩色主控台日誌，方便開發時閱讀"""
    if app.debug:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)

        formatter = colorlog.ColoredFormatter(
            "%(log_color)s[%(asctime)s] %(levelname)-8s%(reset)s %(blue)s%(message)s",
            datefmt="%H:%M:%S",
            reset=True,
            log_colors={
                'DEBUG':    'cyan',
                'INFO':     'green',
                'WARNING':  'yellow',
                'ERROR':    'red',
                'CRITICAL': 'red,bg_white',
            },
            style='%'
        )
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)
    app.logger.setLevel(logging.INFO)
