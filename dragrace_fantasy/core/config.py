from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Drag Race Fantasy League"
    debug: bool = False

    # Database
    database_url: str = "postgresql://localhost:5432/dragrace_fantasy"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache()
def get_settings() -> Settings:
    return Settings()
