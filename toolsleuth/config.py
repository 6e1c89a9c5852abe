"""Configuration loading for the toolsleuth diagnostic tool.

This module provides centralized configuration management:
- Load settings from environment variables and .env files
- Validate configuration using pydantic
- Provide typed access to all settings

Every variable is read with the ``TOOLSLEUTH_`` prefix, e.g.
``TOOLSLEUTH_TIMEOUT_SECONDS=30``, so they never collide with the proxy
variables the tool itself sets for the client.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment.

    Uses pydantic-settings for environment variable handling with
    .env file support via python-dotenv.
    """

    model_config = SettingsConfigDict(
        env_prefix="TOOLSLEUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Client being diagnosed
    client_command: str = Field(
        default="~/.claude/local/claude",
        description="Path to the claude CLI executable",
    )
    client_prompt: str = Field(
        default="this is a test request",
        description="One-shot prompt that makes the client send a request",
    )
    client_show_output: bool = Field(
        default=False,
        description="Show the client's own output in this terminal",
    )

    # Interception proxy
    mitmdump_command: str = Field(
        default="mitmdump",
        description="mitmdump executable",
    )
    proxy_host: str = Field(
        default="127.0.0.1",
        description="Address the proxy listens on",
    )
    proxy_port: int = Field(
        default=8080,
        description="Port the proxy listens on",
    )
    ca_cert_path: str = Field(
        default="~/.mitmproxy/mitmproxy-ca-cert.pem",
        description="mitmproxy CA certificate the client must trust",
    )
    target_url: str = Field(
        default="api.anthropic.com/v1/messages",
        description="URL fragment identifying the messages endpoint",
    )
    error_types: list[str] = Field(
        default=["invalid_request_error"],
        description="API error types treated as schema validation rejections",
    )
    start_marker: str = Field(
        default="--- CLAUDE_TOOL_DIAGNOSIS_START ---",
        description="Line opening a diagnosis frame in the proxy log",
    )
    end_marker: str = Field(
        default="--- CLAUDE_TOOL_DIAGNOSIS_END ---",
        description="Line closing a diagnosis frame in the proxy log",
    )

    # Client environment
    proxy_env_var: str = Field(
        default="HTTPS_PROXY",
        description="Environment variable naming the proxy for the client",
    )
    ca_bundle_env_var: str = Field(
        default="NODE_EXTRA_CA_CERTS",
        description="Environment variable naming the extra CA bundle for the client",
    )

    # Files
    work_dir: str = Field(
        default=".",
        description="Directory for the generated script, raw log, and result",
    )
    script_name: str = Field(
        default="toolsleuth_addon.py",
        description="File name of the generated interception script",
    )
    proxy_log_name: str = Field(
        default="mitmproxy.log",
        description="File name of the raw proxy log (the diagnosis channel)",
    )
    result_file: str = Field(
        default="diagnosis_results.json",
        description="Result file; relative paths are resolved against work_dir",
    )

    # Timing
    timeout_seconds: float = Field(
        default=60.0,
        description="Maximum wait for a diagnosis",
    )
    poll_interval_seconds: float = Field(
        default=1.0,
        description="Delay between checks of the diagnosis channel",
    )
    startup_grace_seconds: float = Field(
        default=3.0,
        description="Wait after launching the proxy before probing it",
    )
    shutdown_grace_seconds: float = Field(
        default=5.0,
        description="Wait after terminating a child before killing it",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    @field_validator(
        "timeout_seconds",
        "poll_interval_seconds",
        "shutdown_grace_seconds",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Ensure waits are positive."""
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("startup_grace_seconds")
    @classmethod
    def validate_startup_grace(cls, v: float) -> float:
        """Ensure startup grace is non-negative."""
        if v < 0:
            raise ValueError("startup_grace_seconds must be non-negative")
        return v

    @field_validator("proxy_port")
    @classmethod
    def validate_proxy_port(cls, v: int) -> int:
        """Ensure proxy port is in valid range."""
        if v <= 0 or v > 65535:
            raise ValueError("proxy_port must be between 1 and 65535")
        return v

    @field_validator("error_types")
    @classmethod
    def validate_error_types(cls, v: list[str]) -> list[str]:
        """Ensure at least one error type is accepted."""
        if not v:
            raise ValueError("error_types must not be empty")
        return v

    @field_validator("start_marker", "end_marker")
    @classmethod
    def validate_marker(cls, v: str) -> str:
        """Ensure markers are usable as whole lines."""
        if not v.strip() or "\n" in v:
            raise ValueError("markers must be a single non-blank line")
        return v.strip()

    @property
    def proxy_url(self) -> str:
        return f"http://{self.proxy_host}:{self.proxy_port}"

    @property
    def work_path(self) -> Path:
        return Path(self.work_dir).expanduser().resolve()

    @property
    def script_path(self) -> Path:
        return self.work_path / self.script_name

    @property
    def proxy_log_path(self) -> Path:
        return self.work_path / self.proxy_log_name

    @property
    def result_path(self) -> Path:
        path = Path(self.result_file).expanduser()
        if path.is_absolute():
            return path
        return self.work_path / path


def load_settings(env_file: str | None = None, **overrides: object) -> Settings:
    """Load application settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.
        **overrides: Values taking precedence over the environment,
                 typically from command-line options.

    Returns:
        Validated Settings instance.

    Raises:
        ValidationError: If settings validation fails.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    if env_file:
        return Settings(_env_file=env_file, **values)  # type: ignore[call-arg]
    return Settings(**values)  # type: ignore[arg-type]


__all__ = ["Settings", "load_settings"]
