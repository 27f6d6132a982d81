import os


class Settings:
    PROJECT_NAME: str = "examprep"
    DEBUG: bool = False
    LOG_DIR: str = "log"
    LOG_FILE: str = "examprep.log"
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CATALOG_FILE: str = "catalog/exams.csv"
    SESSION_COOKIE_NAME: str = "study_session_id"
    SESSION_TIMEOUT_MINUTES: int = 120
    USER_HEADER: str = "X-User-Id"

    # Generative model (OpenAI-compatible chat completions endpoint)
    LLM_API_URL: str = os.getenv(
        "LLM_API_URL", "https://api.groq.com/openai/v1/chat/completions"
    )
    LLM_API_KEY: str = os.getenv("LLM_API_KEY", "")
    LLM_MODEL: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    LLM_TEMPERATURE: float = 0.7
    LLM_TIMEOUT_SECONDS: int = 60

    # Seconds per scheduler tick
    TICK_INTERVAL: float = 1.0
    HISTORY_LIMIT: int = 10


settings = Settings()
