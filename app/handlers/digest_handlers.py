"""
群聊摘要命令

/digest          今天的摘要
/digest вчера    昨天的摘要（也接受 yesterday）
"""
from telegram import Update
from telegram.constants import ChatType, ParseMode
from telegram.ext import ContextTypes
from telegram.helpers import escape_markdown
from loguru import logger

from app.services.digest_service import digest_service, DIGEST_PERIODS
from app.services.llm.results import DigestResult

YESTERDAY_ARGS = ("вчера", "yesterday")

ERROR_TEXT = "❌ Не удалось сформировать дайджест. Попробуйте позже."


def escape_text(text: str) -> str:
    """转义 MarkdownV2 中的所有特殊字符"""
    return escape_markdown(str(text), version=2)


def format_digest(digest: DigestResult, period_label: str) -> str:
    """格式化摘要（MarkdownV2）"""
    actions = "\n".join(f"• {escape_text(item)}" for item in digest.action_items)
    return (
        f"🧾 Дайджест чата за {escape_text(period_label)}\n\n"
        f"📝 *Краткий пересказ*\n{escape_text(digest.summary)}\n\n"
        f"✅ *Action items*\n{actions}\n\n"
        f"🔍 *Контекст*\n"
        f"• Темы: {escape_text(digest.topics)}\n"
        f"• Тон: {escape_text(digest.tone)}"
    )


async def digest_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/digest [вчера]"""
    message = update.message
    chat = update.effective_chat

    if chat.type not in (ChatType.GROUP, ChatType.SUPERGROUP):
        return await message.reply_text("❌ Дайджест доступен только в групповых чатах.")

    period = "yesterday" if context.args and context.args[0].lower() in YESTERDAY_ARGS else "today"
    label = DIGEST_PERIODS[period]
    logger.info(f"🧾 /digest: user={update.effective_user.id if update.effective_user else None}, chat={chat.id}, period={period}")

    placeholder = await message.reply_text(
        f"⏳ Собираю сообщения за {label} и готовлю дайджест… Это может занять до 10–15 секунд."
    )

    try:
        digest = await digest_service.generate_digest(chat.id, period)
    except Exception:
        logger.exception(f"❌ 群 {chat.id} 摘要生成失败")
        return await placeholder.edit_text(ERROR_TEXT)

    if digest is None:
        return await placeholder.edit_text(f"📭 За {label} пока нет сообщений для дайджеста.")

    return await placeholder.edit_text(format_digest(digest, label), parse_mode=ParseMode.MARKDOWN_V2)
