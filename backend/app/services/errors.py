"""
领域异常体系
服务层同步抛出，由 app.main 统一转换为 HTTP 响应
"""


class DomainError(Exception):
    """异常基类，status_code 为 REST 层返回的 HTTP 状态码"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """输入格式错误或外键不存在"""
    status_code = 400


class NotFoundError(DomainError):
    """租户范围内查找不到"""
    status_code = 404


class ConflictError(DomainError):
    """时段重叠或唯一字段重复"""
    status_code = 409


class InvalidTransitionError(ConflictError):
    """非法的预约状态迁移"""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change reservation status from {current} to {target}")
        self.current = current
        self.target = target


class AuthorizationError(DomainError):
    """角色不符或租户不符"""
    status_code = 403
