from datetime import datetime, UTC
from typing import Optional
from sqlmodel import Field, SQLModel, Relationship, Column, BigInteger


class User(SQLModel, table=True):
    """群聊参与者（按 Telegram ID 唯一）"""
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    telegram_id: int = Field(sa_column=Column(BigInteger, unique=True, index=True, nullable=False))

    # 每次发言都会刷新
    username: Optional[str] = Field(default=None, max_length=255, index=True)
    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)

    # 时间戳
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # 关系（删除用户时级联删除消息）
    messages: list["Message"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True},
    )

    @property
    def display_name(self) -> str:
        """@username > first_name > 默认名称"""
        if self.username:
            return f"@{self.username}"
        return self.first_name or "Неизвестный"
