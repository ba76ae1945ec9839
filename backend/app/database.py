"""
数据库配置 - SQLAlchemy 引擎、会话工厂和声明式基类
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from app.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """依赖注入：每个请求一个会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """成功时提交，出错时回滚并重新抛出"""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db():
    """创建所有表"""
    from app.models import ontology  # noqa
    Base.metadata.create_all(bind=engine)
