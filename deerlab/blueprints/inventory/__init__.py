from flask import Blueprint

# url_prefix 在 deerlab/__init__.py 註冊時設定
inventory_bp = Blueprint('inventory', __name__)

from . import routes
