from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./skillsprint.db"

    # Auth provider tokens
    jwt_secret: str = "dev-change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = None
    access_token_expire_minutes: int = 60

    # File Upload
    storage_backend: str = "local"  # local | s3
    upload_dir: str = "./uploads"
    s3_bucket: Optional[str] = None
    s3_region: Optional[str] = None
    signed_url_ttl: int = 3600
    max_file_size: int = 5242880  # 5MB
    allowed_extensions: List[str] = [
        "zip", "txt", "js", "py", "java", "cpp", "c",
        "h", "hpp", "pdf", "jpg", "jpeg", "png", "md",
    ]

    # Grading
    grading_backend: str = "simulated"  # simulated | manual
    auto_grade_on_submit: bool = False
    acceptance_threshold: int = 70

    # Leaderboard / analytics
    leaderboard_limit: int = 50
    recent_window_days: int = 30

    cors_allow_origins: List[str] = ["*"]
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
