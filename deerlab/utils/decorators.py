from functools import wraps
from flask_login import current_user
from deerlab.exceptions import PermissionDenied, Unauthenticated

def permission_required(permission):
    """
    檢查使用者是否具有特定權限
    (需搭配 Role 模型中的 permissions 關聯使用)
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                raise Unauthenticated()
            if not current_user.can(permission):
                raise PermissionDenied()
            return f(*args, **kwargs)
        return decorated_function
    return decorator
