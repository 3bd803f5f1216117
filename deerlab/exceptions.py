class DeerLabException(Exception):
    """DeerLab 系統基礎例外類別"""
    code = 500
    error = 'internal'
    default_message = '系統發生未知錯誤。'

    def __init__(self, message=None, code=None, payload=None):
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['error'] = self.error
        rv['success'] = False
        return rv

class InvalidArgument(DeerLabException):
    """缺少或格式錯誤的參數，在任何寫入之前拋出"""
    code = 400
    error = 'invalid-argument'
    default_message = '缺少或無效的參數。'

class Unauthenticated(DeerLabException):
    """未登入"""
    code = 401
    error = 'unauthenticated'
    default_message = '需要身分驗證才能執行此操作。'

class PermissionDenied(DeerLabException):
    """權限不足"""
    code = 403
    error = 'permission-denied'
    default_message = '權限不足，無法執行此操作。'

class NotFound(DeerLabException):
    """引用的資料不存在"""
    code = 404
    error = 'not-found'
    default_message = '找不到指定的資料。'

class FailedPrecondition(DeerLabException):
    """狀態不允許此操作 (例如對非已訂購的採購單收貨)"""
    code = 409
    error = 'failed-precondition'
    default_message = '目前狀態不允許此操作，請重新整理後再試。'

class AlreadyExists(DeerLabException):
    """唯一性衝突"""
    code = 409
    error = 'already-exists'
    default_message = '資料已存在。'

class Internal(DeerLabException):
    """非預期錯誤或交易失敗"""
    code = 500
    error = 'internal'
