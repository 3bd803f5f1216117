from flask import Blueprint

# url_prefix 在 deerlab/__init__.py 註冊時設定
auth_bp = Blueprint('auth', __name__)

from . import routes
