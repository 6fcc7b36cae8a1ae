from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy import text
from app.config.settings import settings

engine = create_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
    # 进程内共享的有界连接池
    pool_size=settings.database_pool_size,
    max_overflow=0,
    pool_timeout=settings.database_pool_timeout,
)


def create_db_and_tables():
    """创建数据库表和索引"""
    from loguru import logger

    # 导入所有模型以确保SQLModel能创建表
    from app.models.user import User
    from app.models.message import Message

    logger.info("开始创建数据库表...")
    SQLModel.metadata.create_all(engine)


def check_connection():
    """检查 PostgreSQL 连接"""
    from loguru import logger

    with Session(engine) as session:
        now = session.execute(text("SELECT NOW()")).scalar()
        logger.info(f"✅ PostgreSQL 连接正常: {now}")


def get_session():
    """获取数据库会话"""
    with Session(engine) as session:
        yield session
