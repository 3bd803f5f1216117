from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_caching import Cache

# 初始化擴充物件 (暫不綁定 app)
db = SQLAlchemy()
migrate = Migrate()
cache = Cache()
login_manager = LoginManager()

# 配置 LoginManager：API 不做頁面跳轉，未登入由 unauthorized_handler 回傳 401
login_manager.session_protection = 'strong'


@login_manager.user_loader
def load_user(user_id):
    """Flask-Login 使用者載入回呼"""
    from deerlab.models import User
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    from deerlab.exceptions import Unauthenticated
    raise Unauthenticated()
