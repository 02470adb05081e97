from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    environment: str = "development"
    debug: bool = True
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"

    # Agreement store: leave empty to use the local JSON fallback
    database_url: str = ""
    database_url_sync: str = ""
    local_store_path: str = "dkp_agreements.json"

    # Session flags: leave empty to keep them in process memory
    redis_url: str = ""
    session_cookie_name: str = "rulesgate_session"
    session_ttl_seconds: int = 86400  # 24 hours

    # Progress gate
    sections: list[str] = ["section-posting", "section-bidding", "section-general"]
    read_threshold: float = 0.7  # fraction of viewport height

    # Submission
    confirmation_prefix: str = "DKP-"
    max_submit_attempts: int = 5
    ip_hash_salt: str = "DKP_SALT_2024"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
