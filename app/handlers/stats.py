from typing import Optional
from loguru import logger
from telegram import Update, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.ext import ContextTypes
from telegram.error import BadRequest
from app.services.stats_service import stats_service, StatsResult, UserStatsResult, PERIODS, PERIOD_NAMES

MENU_TEXT = "📊 Статистика чата\n\nВыберите опцию:"
ERROR_TEXT = "❌ Произошла ошибка при получении статистики. Попробуйте позже."
MEDALS = ["🥇", "🥈", "🥉"]


def _display_name(username: Optional[str], first_name: Optional[str]) -> str:
    if username:
        return f"@{username}"
    return first_name or "Неизвестный"


def format_chat_stats(stats: StatsResult, period: str) -> str:
    """格式化群聊统计"""
    period_name = PERIOD_NAMES.get(period, period)
    text = f"📊 Статистика чата за {period_name}:\n\n"

    if not stats.top_users:
        return text + "Пока нет сообщений в этом чате.\n"

    text += "🏆 Топ пользователей по сообщениям:\n\n"
    for i, user in enumerate(stats.top_users):
        rank = MEDALS[i] if i < len(MEDALS) else f"{i + 1}."
        text += f"{rank} {_display_name(user.username, user.first_name)} - {user.count} сообщений\n"

    text += f"\n📈 Всего: {stats.total_messages} сообщений от {stats.total_users} пользователей"
    return text


def format_user_stats(stats: UserStatsResult, period: str) -> str:
    period_name = PERIOD_NAMES.get(period, period)
    name = _display_name(stats.username, stats.first_name)
    return f"👤 Статистика пользователя {name} за {period_name}:\n\n📝 Сообщений: {stats.message_count}"


def stats_menu_keyboard(chat_id: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("📊 Общая статистика", callback_data=f"stats:general:{chat_id}")],
        [InlineKeyboardButton("👤 Статистика пользователя", callback_data=f"stats:user:{chat_id}")],
    ])


def period_keyboard(chat_id: int, action: str = "period") -> InlineKeyboardMarkup:
    """周期选择按钮，action 为 period（群聊）或 uperiod（个人）"""
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton("📅 За сегодня", callback_data=f"stats:{action}:{chat_id}:today"),
            InlineKeyboardButton("📆 За неделю", callback_data=f"stats:{action}:{chat_id}:week"),
        ],
        [
            InlineKeyboardButton("📊 За месяц", callback_data=f"stats:{action}:{chat_id}:month"),
            InlineKeyboardButton("🌐 За всё время", callback_data=f"stats:{action}:{chat_id}:all"),
        ],
        [InlineKeyboardButton("🔙 Назад", callback_data=f"stats:menu:{chat_id}")],
    ])


async def _edit(query, text: str, reply_markup: Optional[InlineKeyboardMarkup] = None):
    """编辑消息，内容没变化时 Telegram 报的错误直接忽略"""
    try:
        await query.edit_message_text(text, reply_markup=reply_markup)
    except BadRequest as e:
        if "message is not modified" in str(e).lower():
            logger.debug("统计消息内容未变化，忽略")
            return
        raise


async def stats_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/stats 显示统计菜单"""
    chat_id = update.effective_chat.id
    logger.info(f"📊 /stats: user={update.effective_user.id if update.effective_user else None}, chat={chat_id}")
    try:
        return await update.message.reply_text(MENU_TEXT, reply_markup=stats_menu_keyboard(chat_id))
    except Exception:
        logger.exception("发送统计菜单失败")
        return await update.message.reply_text("Произошла ошибка при получении статистики.")


async def stats_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    统计菜单回调
    callback_data 格式:
    - stats:general:{chat_id}
    - stats:user:{chat_id}
    - stats:period:{chat_id}:{period}
    - stats:uperiod:{chat_id}:{period}
    - stats:menu:{chat_id}
    """
    query = update.callback_query
    await query.answer()

    parts = query.data.split(":")
    try:
        action = parts[1]
        chat_id = int(parts[2])
    except (IndexError, ValueError):
        await _edit(query, "❌ Неверные данные кнопки.")
        return

    period = parts[3] if len(parts) > 3 and parts[3] in PERIODS else "all"

    try:
        if action in ("general", "period"):
            stats = await stats_service.get_chat_stats(chat_id, period)
            await _edit(query, format_chat_stats(stats, period), period_keyboard(chat_id))

        elif action == "user":
            await _edit(
                query,
                "👤 Статистика пользователя\n\nВыберите период:",
                period_keyboard(chat_id, "uperiod"),
            )

        elif action == "uperiod":
            stats = await stats_service.get_user_stats(chat_id, query.from_user.id, period)
            if not stats:
                await _edit(query, "Пользователь не найден в базе данных.", period_keyboard(chat_id, "uperiod"))
                return
            await _edit(query, format_user_stats(stats, period), period_keyboard(chat_id, "uperiod"))

        elif action == "menu":
            await _edit(query, MENU_TEXT, stats_menu_keyboard(chat_id))

        else:
            await _edit(query, "❌ Неизвестное действие.")

    except Exception:
        logger.exception(f"统计回调处理失败: {query.data}")
        try:
            await query.edit_message_text(ERROR_TEXT)
        except BadRequest:
            await query.message.reply_text(ERROR_TEXT)
