from telegram import Update, BotCommand
from telegram.ext import ContextTypes

START_TEXT = "Бот запущен и готов к работе! Используйте /stats для статистики."

# 启动时注册到 Telegram 的命令菜单
BOT_COMMANDS = [
    BotCommand("start", "Запустить бота"),
    BotCommand("stats", "Статистика чата"),
    BotCommand("analyze", "Анализ стиля общения пользователя"),
    BotCommand("digest", "Дайджест чата за сегодня"),
]


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/start"""
    return await update.message.reply_text(START_TEXT)
