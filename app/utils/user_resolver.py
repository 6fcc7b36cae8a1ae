import re
from typing import Optional
from telegram import Message
from sqlmodel import Session
from app.services.message_store import MessageStore

MENTION_RE = re.compile(r"@(\w+)")


class TargetUserNotFound(Exception):
    """@username 在数据库中不存在"""

    def __init__(self, username: str):
        super().__init__(username)
        self.username = username


def is_real_reply(message: Message) -> bool:
    """
    判断消息是否是真实的回复（而不是话题内的发言）

    在话题（Topic）中，reply_to_message.message_thread_id == reply_to_message.id
    表示只是在话题内发言（假回复）
    """
    if not message or not message.reply_to_message:
        return False

    reply_to = message.reply_to_message
    if not reply_to.message_thread_id:
        return True
    return reply_to.message_thread_id != reply_to.id


class UserResolver:
    """
    分析目标解析，优先级:
    1. 回复消息: /analyze (回复某条消息)
    2. 用户名: /analyze @username
    3. 命令发送者本人
    """

    @staticmethod
    def resolve(message: Message, args: list[str], session: Session) -> Optional[int]:
        """
        返回目标用户的 Telegram ID，无法确定时返回 None

        Raises:
            TargetUserNotFound: 指定了 @username 但数据库中没有该用户
        """
        # 情况1: 回复消息
        if is_real_reply(message) and message.reply_to_message.from_user:
            return message.reply_to_message.from_user.id

        # 情况2: @username（只看参数，避免匹配到 /analyze@bot_name）
        match = MENTION_RE.search(" ".join(args or []))
        if match:
            username = match.group(1)
            user = MessageStore.find_user_by_username(session, username)
            if not user:
                raise TargetUserNotFound(username)
            return user.telegram_id

        # 情况3: 发送者本人
        return message.from_user.id if message.from_user else None
