from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from deerlab.extensions import db
from .base import BaseModel

# 多對多關聯表：角色 <-> 權限
roles_permissions = db.Table('roles_permissions',
    db.Column('role_id', db.Integer, db.ForeignKey('auth_roles.id')),
    db.Column('permission_id', db.Integer, db.ForeignKey('auth_permissions.id'))
)

class Permission(BaseModel):
    """權限點"""
    __tablename__ = 'auth_permissions'

    PURCHASE_MANAGE = 'purchase.manage'
    PURCHASE_RECEIVE = 'purchase.receive'
    INVENTORY_ADJUST = 'inventory.adjust'
    INVENTORY_STOCKTAKE = 'inventory.stocktake'
    WORK_ORDER_MANAGE = 'workorder.manage'

    name = db.Column(db.String(64), unique=True)  # 例如: 'inventory.stocktake'
    description = db.Column(db.String(128))

    def __repr__(self):
        return f'<Permission {self.name}>'

class Role(BaseModel):
    """角色"""
    __tablename__ = 'auth_roles'
    name = db.Column(db.String(64), unique=True)
    is_admin = db.Column(db.Boolean, default=False)

    # 關聯
    permissions = db.relationship('Permission', secondary=roles_permissions, backref='roles')
    users = db.relationship('User', backref='role', lazy='dynamic')

    def __repr__(self):
        return f'<Role {self.name}>'

class User(UserMixin, BaseModel):
    """使用者"""
    __tablename__ = 'auth_users'
    email = db.Column(db.String(128), unique=True, index=True)
    username = db.Column(db.String(64), index=True)
    employee_id = db.Column(db.String(32), unique=True)
    password_hash = db.Column(db.String(256))

    is_active_user = db.Column(db.Boolean, default=True)  # 停用開關
    is_admin = db.Column(db.Boolean, default=False)

    role_id = db.Column(db.Integer, db.ForeignKey('auth_roles.id'))

    @property
    def password(self):
        raise AttributeError('密碼不可讀')

    @password.setter
    def password(self, password):
        self.password_hash = generate_password_hash(password)

    def verify_password(self, password):
        return check_password_hash(self.password_hash, password)

    def can(self, permission):
        """
        檢查使用者是否具有指定權限
        管理員擁有所有權限
        """
        if self.is_admin:
            return True
        if self.role and self.role.is_admin:
            return True
        if self.role:
            for perm in self.role.permissions:
                if perm.name == permission:
                    return True
        return False

    # Flask-Login 必要屬性覆寫
    @property
    def is_active(self):
        return bool(self.is_active_user)

    def __repr__(self):
        return f'<User {self.username}>'
