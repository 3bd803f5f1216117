from flask import request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user

from deerlab.blueprints.auth import auth_bp
from deerlab.exceptions import Unauthenticated
from deerlab.models.auth import User
from deerlab.schemas import parse_payload, LoginRequest


def user_to_dict(user):
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'employeeId': user.employee_id,
        'role': user.role.name if user.role else None,
        'isAdmin': bool(user.is_admin or (user.role and user.role.is_admin)),
    }


@auth_bp.route('/login', methods=['POST'])
def login():
    payload = parse_payload(LoginRequest, request.get_json(silent=True))
    user = User.query.filter_by(email=payload.email).first()

    # 帳號不存在與密碼錯誤回傳相同訊息
    if user is None or not user.verify_password(payload.password):
        current_app.logger.warning(f'登入失敗: {payload.email}')
        raise Unauthenticated('帳號或密碼錯誤。')
    if not user.is_active_user:
        raise Unauthenticated('該帳號已被停用，請聯繫管理員。')

    login_user(user, remember=payload.remember_me)
    current_app.logger.info(f'使用者 {user.id} 登入')
    return jsonify({'success': True, 'user': user_to_dict(user)})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    current_app.logger.info(f'使用者 {current_user.id} 登出')
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'success': True, 'user': user_to_dict(current_user)})
