from loguru import logger
from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    MessageHandler,
    CallbackQueryHandler,
    ContextTypes,
    filters,
)
from app.config.settings import settings
from app.database.cache import get_redis, close_redis
from app.database.connection import create_db_and_tables, check_connection
from app.handlers.commands import start_command, BOT_COMMANDS
from app.handlers.stats import stats_command, stats_callback
from app.handlers.ai import analyze_command
from app.handlers.digest_handlers import digest_command
from app.handlers.events import on_message


async def post_init(application: Application):
    """Application 初始化后的钩子，在事件循环中运行"""

    # 设置 Bot 命令列表（输入 / 时自动弹出）
    await application.bot.set_my_commands(BOT_COMMANDS)
    logger.info("Bot 命令列表已设置")

    # 提前建立 Redis 连接，失败时统计直接查询数据库
    await get_redis()

    providers = [
        name for name, enabled in (
            ("DeepSeek", settings.is_deepseek_configured),
            ("Qwen", settings.is_qwen_configured),
            ("Gemini", settings.is_gemini_configured),
        ) if enabled
    ]
    if providers:
        logger.info(f"🤖 已配置的 LLM 提供方: {', '.join(providers)}")
    else:
        logger.warning("未配置任何 LLM 提供方，/analyze 和 /digest 将不可用")


async def post_shutdown(application: Application):
    """Application 关闭后的钩子"""
    await close_redis()


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE):
    """记录处理器中未捕获的异常"""
    logger.opt(exception=context.error).error(f"处理更新时出现未捕获的异常: {update}")


def main():
    """初始化数据库并启动Telegram Bot"""
    logger.info("正在初始化数据库...")
    check_connection()
    create_db_and_tables()
    logger.info("数据库初始化完成!")

    # 创建Application，并注册生命周期钩子
    application = (
        Application.builder()
        .token(settings.telegram_bot_token)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # 注册命令处理器
    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("stats", stats_command))
    application.add_handler(CommandHandler("analyze", analyze_command))
    application.add_handler(CommandHandler("digest", digest_command))

    # 统计菜单回调
    application.add_handler(CallbackQueryHandler(stats_callback, pattern="^stats:"))

    # 群组文本消息入库（排除命令）
    application.add_handler(
        MessageHandler(filters.TEXT & ~filters.COMMAND & filters.ChatType.GROUPS, on_message)
    )

    application.add_error_handler(error_handler)

    logger.info("Bot启动成功，开始监听...")
    # 启动Bot
    application.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
