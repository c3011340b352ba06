"""Configuration management."""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    debug: bool = Field(default=False, description="Enable debug mode")
    allowed_origins: List[str] = Field(default=["*"], description="CORS allowed origins")

    # Generation
    default_seed: str = Field(default="hanna", description="Seed used when a request omits one")
    max_num_points: int = Field(default=500, description="Largest num_points a request may ask for")
    max_segments: int = Field(default=4000, description="Largest ribbon segment count a request may ask for")
    max_chain_attempts: int = Field(
        default=500000, description="Largest chain budget (attempts times retries) a request may ask for"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log renderer: json or console")

    class Config:
        env_file = ".env"
        env_prefix = "TRACKGEN_"


settings = Settings()
