"""
Service configuration for the HTTP boundary and external collaborators.

Provides settings for the pipeline executor (workflow webhook), the API
server, token verification and logging.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ExecutorConfig:
    """Pipeline executor configuration (N8n workflow webhook)."""

    webhook_url: str = ""
    api_key: str = ""
    request_timeout_seconds: float = 120.0


@dataclass
class APIConfig:
    """API server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000"]
    )
    overload_threshold: int = 100
    max_pending: int = 0  # Reject submissions at this queue length; 0 disables


@dataclass
class AuthConfig:
    """Bearer token verification settings."""

    jwt_secret: str = "your-secret-key"
    algorithm: str = "HS256"


@dataclass
class LoggingConfig:
    """Logging settings applied at process start."""

    level: str = "INFO"
    file: Optional[str] = None
