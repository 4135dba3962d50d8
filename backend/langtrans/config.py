from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    admin_id: str                  # will read from .env
    admin_password: str            # will read from .env
    host: str = "0.0.0.0"
    port: int = 8080
    model_path: str = "./model"
    apikeys_path: str = "./api_keys.json"
    device: str = "auto"           # auto, cpu, cuda
    intra_op_threads: int = 4
    max_new_tokens: int = 512
    max_input_tokens: int = 4096
    inference_workers: int = 1
    preload_model: bool = True
    session_ttl_seconds: int = 3600
    login_max_failures: int = 5
    login_lockout_seconds: int = 30 * 60
    trust_forwarded_for: bool = False
    cors_origins: List[str] = []
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="LANGTRANS_",
        env_file=".env",
        extra="ignore",
    )
