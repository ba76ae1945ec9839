"""
权限码与角色 -> 权限映射
角色为封闭枚举，每个角色对应一个不可变的权限码集合
"""
from typing import Dict, FrozenSet

from app.models.ontology import UserRole

# 预约
RESERVATION_READ = "reservation:read"
RESERVATION_WRITE = "reservation:write"
RESERVATION_CANCEL = "reservation:cancel"
RESERVATION_DELETE = "reservation:delete"
RESERVATION_BOOK = "reservation:book"
SLOT_READ = "slot:read"

# 客户 / 车辆
CLIENT_READ = "client:read"
CLIENT_WRITE = "client:write"
VEHICLE_READ = "vehicle:read"
VEHICLE_WRITE = "vehicle:write"

# 检验类别与节假日
CATEGORY_READ = "category:read"
CATEGORY_WRITE = "category:write"
HOLIDAY_READ = "holiday:read"
HOLIDAY_WRITE = "holiday:write"

# 支付
PAYMENT_READ = "payment:read"
PAYMENT_WRITE = "payment:write"
PAYMENT_REFUND = "payment:refund"

# 促销
PROMOTION_READ = "promotion:read"
PROMOTION_WRITE = "promotion:write"

# 通知 / 短信
NOTIFICATION_READ = "notification:read"
SMS_READ = "sms:read"

# 设置 / 用户
SETTINGS_READ = "settings:read"
SETTINGS_WRITE = "settings:write"
USER_READ = "user:read"
USER_WRITE = "user:write"


ALL_PERMISSIONS: FrozenSet[str] = frozenset(
    value for name, value in globals().items()
    if name.isupper() and isinstance(value, str) and ":" in value
)

_EMPLOYEE_PERMISSIONS = frozenset({
    RESERVATION_READ, RESERVATION_WRITE, RESERVATION_CANCEL, SLOT_READ,
    CLIENT_READ, CLIENT_WRITE, VEHICLE_READ, VEHICLE_WRITE,
    CATEGORY_READ, HOLIDAY_READ,
    PAYMENT_READ, PAYMENT_WRITE,
    PROMOTION_READ,
    NOTIFICATION_READ,
    SETTINGS_READ, USER_READ,
})

_CLIENT_PERMISSIONS = frozenset({
    RESERVATION_BOOK, SLOT_READ,
    CATEGORY_READ,
    NOTIFICATION_READ,
})

ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[str]] = {
    UserRole.SUPER_ADMIN: ALL_PERMISSIONS,
    UserRole.CT_ADMIN: ALL_PERMISSIONS,
    UserRole.EMPLOYEE: _EMPLOYEE_PERMISSIONS,
    UserRole.CLIENT: _CLIENT_PERMISSIONS,
}


def has_permission(role: UserRole, code: str) -> bool:
    return code in ROLE_PERMISSIONS.get(role, frozenset())
