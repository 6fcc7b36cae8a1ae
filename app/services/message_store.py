"""
消息存储服务

用户与消息的持久化和聚合查询，所有方法都使用调用方传入的会话
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Optional, List, Tuple
from sqlmodel import Session, select, func, and_
from sqlalchemy.exc import IntegrityError
from loguru import logger
from app.models import User, Message


@dataclass
class MessageFilters:
    """消息过滤条件（AND 组合，未设置的条件不生效）"""
    chat_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def conditions(self) -> list:
        result = []
        if self.chat_id is not None:
            result.append(Message.chat_id == self.chat_id)
        if self.start_date is not None:
            result.append(Message.created_at >= self.start_date)
        if self.end_date is not None:
            result.append(Message.created_at <= self.end_date)
        return result

    @property
    def is_empty(self) -> bool:
        return self.chat_id is None and self.start_date is None and self.end_date is None


@dataclass
class TopUserRow:
    user_id: int
    count: int
    username: Optional[str]
    first_name: Optional[str]


@dataclass
class UserActivityRow:
    id: int
    telegram_id: int
    username: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    message_count: int
    first_message: Optional[datetime]
    last_message: Optional[datetime]


class MessageStore:
    """用户和消息存储"""

    @staticmethod
    def upsert_user(
        session: Session,
        telegram_id: int,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> User:
        """
        按 Telegram ID 查找或创建用户

        已存在时刷新 username / first_name / last_name
        """
        statement = select(User).where(User.telegram_id == telegram_id)
        user = session.exec(statement).first()

        if user:
            user.username = username or None
            user.first_name = first_name or None
            user.last_name = last_name or None
            user.updated_at = datetime.now(UTC)
        else:
            user = User(
                telegram_id=telegram_id,
                username=username or None,
                first_name=first_name or None,
                last_name=last_name or None,
            )

        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    @staticmethod
    def record_message(
        session: Session,
        user_id: int,
        telegram_message_id: int,
        chat_id: int,
        text: str
    ) -> Optional[Message]:
        """
        保存消息

        (telegram_message_id, chat_id) 已存在时不报错，返回 None
        """
        message = Message(
            user_id=user_id,
            telegram_message_id=telegram_message_id,
            chat_id=chat_id,
            text=text,
        )
        session.add(message)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            logger.debug(f"消息已存在，跳过: chat={chat_id}, message={telegram_message_id}")
            return None

        session.refresh(message)
        return message

    @staticmethod
    def find_user_by_telegram_id(session: Session, telegram_id: int) -> Optional[User]:
        statement = select(User).where(User.telegram_id == telegram_id)
        return session.exec(statement).first()

    @staticmethod
    def find_user_by_username(session: Session, username: str) -> Optional[User]:
        """按用户名查找（不带@）"""
        statement = select(User).where(User.username == username)
        return session.exec(statement).first()

    @staticmethod
    def query_messages_by_user(
        session: Session,
        user_id: int,
        filters: Optional[MessageFilters] = None,
        limit: Optional[int] = None
    ) -> List[Message]:
        """获取用户消息（最新的在前）"""
        filters = filters or MessageFilters()
        statement = (
            select(Message)
            .where(Message.user_id == user_id, *filters.conditions())
            .order_by(Message.created_at.desc(), Message.id.desc())
        )
        if limit:
            statement = statement.limit(limit)
        return list(session.exec(statement).all())

    @staticmethod
    def count_messages_by_user(
        session: Session,
        user_id: int,
        filters: Optional[MessageFilters] = None
    ) -> int:
        filters = filters or MessageFilters()
        statement = select(func.count(Message.id)).where(
            Message.user_id == user_id, *filters.conditions()
        )
        return session.exec(statement).one() or 0

    @staticmethod
    def top_users_by_message_count(
        session: Session,
        limit: int = 10,
        filters: Optional[MessageFilters] = None
    ) -> List[TopUserRow]:
        """发言数排行（并列时按数据库返回顺序）"""
        filters = filters or MessageFilters()
        msg_count = func.count(Message.id).label("msg_count")
        statement = (
            select(Message.user_id, msg_count, User.username, User.first_name)
            .join(User, Message.user_id == User.id)
            .where(*filters.conditions())
            .group_by(Message.user_id, User.username, User.first_name)
            .order_by(msg_count.desc())
            .limit(limit)
        )
        return [
            TopUserRow(user_id=user_id, count=int(count), username=username, first_name=first_name)
            for user_id, count, username, first_name in session.exec(statement).all()
        ]

    @staticmethod
    def aggregate_stats(
        session: Session,
        filters: Optional[MessageFilters] = None
    ) -> Tuple[int, int]:
        """
        总体统计

        Returns:
            (消息总数, 发言用户数)
        """
        filters = filters or MessageFilters()
        statement = select(
            func.count(func.distinct(Message.id)),
            func.count(func.distinct(Message.user_id)),
        ).where(*filters.conditions())
        total_messages, total_users = session.exec(statement).one()
        return int(total_messages or 0), int(total_users or 0)

    @staticmethod
    def query_chat_messages(
        session: Session,
        chat_id: int,
        start_date: datetime,
        end_date: datetime,
        limit: int = 200
    ) -> List[Message]:
        """获取群聊在时间窗口内的消息（按时间升序）"""
        statement = (
            select(Message)
            .where(
                and_(
                    Message.chat_id == chat_id,
                    Message.created_at >= start_date,
                    Message.created_at <= end_date,
                )
            )
            .order_by(Message.created_at, Message.id)
            .limit(limit)
        )
        return list(session.exec(statement).all())

    @staticmethod
    def list_users_with_activity(session: Session) -> List[UserActivityRow]:
        """所有用户及其消息数、首条/末条消息时间"""
        msg_count = func.count(Message.id).label("msg_count")
        statement = (
            select(
                User.id,
                User.telegram_id,
                User.username,
                User.first_name,
                User.last_name,
                msg_count,
                func.min(Message.created_at),
                func.max(Message.created_at),
            )
            .join(Message, Message.user_id == User.id, isouter=True)
            .group_by(User.id, User.telegram_id, User.username, User.first_name, User.last_name)
            .order_by(msg_count.desc(), User.id)
        )
        return [UserActivityRow(*row[:5], int(row[5]), row[6], row[7]) for row in session.exec(statement).all()]

    @staticmethod
    def daily_message_counts(session: Session, days: int = 30) -> List[Tuple[str, int]]:
        """最近 N 天每日消息数，按日期升序"""
        since = datetime.now(UTC) - timedelta(days=days)
        day = func.date(Message.created_at).label("day")
        statement = (
            select(day, func.count(Message.id))
            .where(Message.created_at >= since)
            .group_by(day)
            .order_by(day)
        )
        # PostgreSQL 返回 date，SQLite 返回字符串
        return [(str(d), int(c)) for d, c in session.exec(statement).all()]
