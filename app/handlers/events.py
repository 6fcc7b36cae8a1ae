from loguru import logger
from telegram import Update
from telegram.constants import ChatType
from telegram.ext import ContextTypes
from sqlmodel import Session
from app.database.connection import engine
from app.services.message_store import MessageStore

GROUP_CHAT_TYPES = (ChatType.GROUP, ChatType.SUPERGROUP)


async def on_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    监听群组文本消息并入库
    只处理群组/超级群组的非命令文本，任何错误只记日志，不回复
    """
    message = update.message
    if not message or not message.text or not message.from_user:
        return

    if message.chat.type not in GROUP_CHAT_TYPES:
        return

    sender = message.from_user

    try:
        with Session(engine) as session:
            user = MessageStore.upsert_user(
                session,
                telegram_id=sender.id,
                username=sender.username,
                first_name=sender.first_name,
                last_name=sender.last_name,
            )
            saved = MessageStore.record_message(
                session,
                user_id=user.id,
                telegram_message_id=message.message_id,
                chat_id=message.chat.id,
                text=message.text,
            )
        if saved:
            logger.debug(f"💬 消息已保存: chat={message.chat.id}, user={sender.id}, msg={message.message_id}")
    except Exception as e:
        logger.error(f"保存消息失败: chat={message.chat.id}, msg={message.message_id}: {e}")
