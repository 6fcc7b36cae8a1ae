from datetime import datetime, UTC
from typing import Optional
from sqlalchemy import ForeignKey, UniqueConstraint
from sqlmodel import Field, SQLModel, Relationship, Column, TEXT, BigInteger, Integer


class Message(SQLModel, table=True):
    """群聊文本消息，创建后不再修改"""
    __tablename__ = "messages"
    __table_args__ = (
        # 同一个 Telegram 事件重复投递时只保留一条
        UniqueConstraint("telegram_message_id", "chat_id", name="uq_messages_telegram_message_chat"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    telegram_message_id: int = Field(sa_column=Column(BigInteger, nullable=False))
    chat_id: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))

    text: str = Field(sa_column=Column(TEXT, nullable=False))

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)

    # 关系
    user: Optional["User"] = Relationship(back_populates="messages")
