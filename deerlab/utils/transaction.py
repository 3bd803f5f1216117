"""
交易工具
把一段讀寫包成單一交易：成功即 commit，失敗整批 rollback；
遇到並行衝突 (流水號或單號碰撞、鎖逾時、序列化失敗) 會整段重跑。
"""
from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from deerlab.extensions import db
from deerlab.exceptions import DeerLabException, AlreadyExists, Internal

# 並行建立單據時可能互撞的唯一鍵：計數器本身與由計數器產生的代號
CONTENTION_CONSTRAINT_HINTS = ('counters', 'code')


def is_contention(error):
    """唯一鍵衝突是否來自流水號競爭 (其餘視為真正的重複資料)"""
    message = str(getattr(error, 'orig', None) or error).lower()
    return any(hint in message for hint in CONTENTION_CONSTRAINT_HINTS)


def describe_context(actor=None, target=None):
    actor_id = getattr(actor, 'id', None) if actor is not None else None
    return f"[使用者 {actor_id if actor_id is not None else '-'}] [對象 {target if target is not None else '-'}]"


def run_in_transaction(work, description='資料庫交易', actor=None, target=None, max_attempts=None):
    """
    執行 work() 並提交。
    work 必須在函式內重新讀取所需資料，重試時才會看到最新狀態。
    業務錯誤 (DeerLabException) 不重試，直接拋出。
    :param actor: 執行操作的使用者，只用於日誌
    :param target: 操作對象 (單據 id、引用路徑等)，只用於日誌
    """
    attempts = max_attempts or current_app.config.get('TRANSACTION_MAX_ATTEMPTS', 5)
    context = describe_context(actor, target)

    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.session.commit()
            return result
        except DeerLabException as e:
            db.session.rollback()
            current_app.logger.warning(f'{context} {description}失敗 ({e.error}): {e.message}')
            raise
        except IntegrityError as e:
            db.session.rollback()
            if not is_contention(e):
                current_app.logger.warning(f'{context} {description} 資料重複: {e.orig}')
                raise AlreadyExists(f'{description}失敗：資料已存在。') from e
            if attempt >= attempts:
                current_app.logger.error(f'{context} {description} 重試 {attempts} 次後仍衝突: {e.orig}')
                raise AlreadyExists(f'{description}失敗：代號已被使用。') from e
            current_app.logger.warning(f'{context} {description} 發生衝突，第 {attempt} 次重試: {e.orig}')
        except OperationalError as e:
            db.session.rollback()
            if attempt >= attempts:
                current_app.logger.error(f'{context} {description} 重試 {attempts} 次後仍衝突: {e.orig}')
                raise Internal(f'{description}失敗，請稍後再試。') from e
            current_app.logger.warning(f'{context} {description} 發生衝突，第 {attempt} 次重試: {e.orig}')
        except Exception as e:
            db.session.rollback()
            current_app.logger.exception(f'{context} {description} 發生未預期錯誤: {e}')
            raise Internal(f'{description}時發生未知錯誤。') from e
