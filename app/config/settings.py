from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    telegram_bot_token: str

    # 本地时区，用于计算"今天"/"昨天"的自然日边界
    timezone: str = "UTC"

    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "telegram_bot"
    database_user: str = "postgres"
    database_password: str
    # 连接池上限（进程内共享）
    database_pool_size: int = 20
    database_pool_timeout: int = 5

    # Redis 缓存
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str = ""
    redis_socket_timeout: float = 2.0
    cache_ttl: int = 1200  # 统计缓存 20 分钟

    # Gemini（Google Generative Language REST API）
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_models: str = "gemini-3-flash-preview,gemini-2.5-flash,gemini-2.5-pro,gemini-1.5-flash,gemini-pro"
    gemini_max_retries: int = 3
    gemini_retry_base_delay: float = 2.0

    # DeepSeek
    deepseek_api_key: str = ""
    deepseek_api_url: str = "https://api.deepseek.com"
    deepseek_model: str = "deepseek-chat"

    # Qwen（DashScope OpenAI 兼容接口）
    dashscope_api_key: str = ""
    dashscope_base_url: str = "https://dashscope-intl.aliyuncs.com/compatible-mode/v1"
    dashscope_model: str = "qwen-plus"

    llm_request_timeout: float = 60.0

    # 各入口的 LLM 提供方优先级（逗号分隔）
    analyze_provider_order: str = "deepseek,qwen,gemini"
    digest_provider_order: str = "qwen,gemini,deepseek"
    dashboard_provider_order: str = "deepseek,qwen,gemini"

    analyze_message_limit: int = 30
    digest_max_messages: int = 200

    # Web 看板
    dashboard_host: str = "0.0.0.0"
    dashboard_port: int = 3001
    dashboard_cors_origins: str = "http://localhost:3000"
    recent_analyses_limit: int = 10

    @property
    def database_url(self) -> str:
        return f"postgresql://{self.database_user}:{self.database_password}@{self.database_host}:{self.database_port}/{self.database_name}"

    @property
    def redis_url(self) -> str:
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def gemini_model_list(self) -> list[str]:
        """解析 Gemini 模型优先级列表"""
        return [m.strip() for m in self.gemini_models.split(",") if m.strip()]

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.dashboard_cors_origins.split(",") if o.strip()]

    @property
    def is_gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def is_deepseek_configured(self) -> bool:
        return bool(self.deepseek_api_key)

    @property
    def is_qwen_configured(self) -> bool:
        return bool(self.dashscope_api_key)


settings = Settings()
