import uvicorn
from loguru import logger
from app.config.settings import settings


def main():
    """启动看板 API"""
    logger.info(f"看板 API 启动: http://{settings.dashboard_host}:{settings.dashboard_port}")
    uvicorn.run("app.web.api:app", host=settings.dashboard_host, port=settings.dashboard_port)


if __name__ == "__main__":
    main()
