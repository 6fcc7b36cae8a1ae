"""
AI 用户分析命令

/analyze [@username] 或回复某条消息，分析目标用户的沟通风格
"""

from typing import Optional
from telegram import Update
from telegram.ext import ContextTypes
from loguru import logger
from sqlmodel import Session

from app.database.connection import engine
from app.services.analysis_service import analysis_service
from app.services.llm.errors import AnalysisFailedError, user_message_for
from app.services.llm.results import AnalysisResult
from app.services.message_store import MessageStore
from app.utils.user_resolver import UserResolver, TargetUserNotFound

PROCESSING_TEXT = "⏳ Анализирую пользователя... Это может занять несколько секунд."
NOT_FOUND_TEXT = "❌ Пользователь не найден в базе данных."
COMMAND_ERROR_TEXT = "Произошла ошибка при обработке команды."
USAGE_TEXT = (
    "❌ Не удалось определить пользователя для анализа.\n\n"
    "Использование:\n"
    "• /analyze @username - анализ по username\n"
    "• /analyze (reply на сообщение) - анализ пользователя из сообщения\n"
    "• /analyze - анализ вашего профиля"
)


def format_analysis(analysis: AnalysisResult, username: Optional[str], first_name: Optional[str], provider: str) -> str:
    """格式化分析结果"""
    name = f"@{username}" if username else (first_name or "Неизвестный")
    return (
        f"🔍 Анализ пользователя {name}\n\n"
        f"📝 Стиль: {analysis.style}\n"
        f"💬 Темы: {analysis.topics}\n"
        f"📏 Средняя длина сообщений: {analysis.average_length}\n"
        f"⏰ Активность: {analysis.activity}\n"
        f"😊 Тональность: {analysis.tone}\n"
        f"✨ Особенности: {analysis.features}\n\n"
        f"📊 На основе {analysis.message_count} сообщений за {analysis.period}.\n\n"
        f"🤖 Анализ выполнен через {provider} API"
    )


async def analyze_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/analyze [@username]"""
    try:
        return await _analyze(update, context)
    except Exception:
        logger.exception("❌ /analyze 命令处理失败")
        return await update.message.reply_text(COMMAND_ERROR_TEXT)


async def _analyze(update: Update, context: ContextTypes.DEFAULT_TYPE):
    message = update.message
    logger.info(f"🔍 /analyze: user={message.from_user.id if message.from_user else None}, chat={message.chat.id}")

    try:
        with Session(engine) as session:
            target_id = UserResolver.resolve(message, context.args, session)
            user = MessageStore.find_user_by_telegram_id(session, target_id) if target_id else None
            username = user.username if user else None
            first_name = user.first_name if user else None
    except TargetUserNotFound as e:
        return await message.reply_text(f"❌ Пользователь @{e.username} не найден в базе данных.")

    if not target_id:
        return await message.reply_text(USAGE_TEXT)

    placeholder = await message.reply_text(PROCESSING_TEXT)

    if not user:
        return await placeholder.edit_text(NOT_FOUND_TEXT)

    try:
        outcome = await analysis_service.analyze(target_id)
    except AnalysisFailedError as e:
        logger.error(f"❌ 用户 {target_id} 分析失败: {e.kind} {e.message}")
        return await placeholder.edit_text(user_message_for(e.kind))
    except Exception:
        logger.exception(f"❌ 分析用户 {target_id} 时出现未知错误")
        return await placeholder.edit_text(user_message_for(None))

    if outcome is None:
        return await placeholder.edit_text(NOT_FOUND_TEXT)

    return await placeholder.edit_text(
        format_analysis(outcome.analysis, username, first_name, outcome.provider)
    )
