"""
app/inspection/domain/booking_code.py

便于阅读的预约编号：前缀 + 8 位大写十六进制字符
"""
import logging
import secrets
from typing import Callable

from app.services.errors import ConflictError

logger = logging.getLogger(__name__)


def generate_booking_code(prefix: str = "RES-") -> str:
    return f"{prefix}{secrets.token_hex(4).upper()}"


def issue_booking_code(
    exists: Callable[[str], bool],
    prefix: str = "RES-",
    max_attempts: int = 10,
    generator: Callable[[str], str] = generate_booking_code,
) -> str:
    """
    反复生成随机编号，直到得到未被占用的编号

    Args:
        exists: 检查编号是否已被使用
        prefix: 编号前缀
        max_attempts: 最大尝试次数
        generator: 编号生成函数（测试时可注入）

    Raises:
        ConflictError: 所有尝试均冲突
    """
    for attempt in range(1, max_attempts + 1):
        code = generator(prefix)
        if not exists(code):
            return code
        logger.warning(f"Booking code collision on {code} (attempt {attempt}/{max_attempts})")
    raise ConflictError("Could not issue a unique booking code, please retry")
