"""Settings for the runner core.

Values are read from the environment (and an optional ``.env`` file).
Grouped views are exposed as properties: ``settings.coordinator`` and
``settings.kubernetes``.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .coordinator import CoordinatorConfig
from .kubernetes import KubernetesConfig


class Settings(BaseSettings):
    """Runner settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", pattern="^(console|json)$")

    # Kubernetes executor
    kubernetes_host: str = ""
    kubernetes_cert_file: str = ""
    kubernetes_key_file: str = ""
    kubernetes_ca_file: str = ""
    kubernetes_namespace: str = ""
    kubernetes_image: str = ""
    kubernetes_cpus: str = ""
    kubernetes_memory: str = ""
    kubernetes_image_pull_policy: str = "IfNotPresent"
    kubernetes_poll_interval_seconds: float = Field(default=1.0, gt=0)
    kubernetes_poll_timeout_seconds: float = Field(default=180.0, ge=0)

    @field_validator("kubernetes_image_pull_policy")
    @classmethod
    def _validate_pull_policy(cls, v: str) -> str:
        allowed = {"Always", "IfNotPresent", "Never"}
        if v not in allowed:
            raise ValueError(f"kubernetes_image_pull_policy must be one of {sorted(allowed)}, got {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def coordinator(self) -> CoordinatorConfig:
        """Coordinator connection settings."""
        return CoordinatorConfig()

    @property
    def kubernetes(self) -> KubernetesConfig:
        """Kubernetes executor settings."""
        return KubernetesConfig(
            host=self.kubernetes_host,
            cert_file=self.kubernetes_cert_file,
            key_file=self.kubernetes_key_file,
            ca_file=self.kubernetes_ca_file,
            namespace=self.kubernetes_namespace,
            image=self.kubernetes_image,
            cpus=self.kubernetes_cpus,
            memory=self.kubernetes_memory,
            image_pull_policy=self.kubernetes_image_pull_policy,
            poll_interval_seconds=self.kubernetes_poll_interval_seconds,
            poll_timeout_seconds=self.kubernetes_poll_timeout_seconds,
        )


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


settings = get_settings()

__all__ = ["Settings", "CoordinatorConfig", "KubernetesConfig", "get_settings", "settings"]
