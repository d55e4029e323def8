"""Coordinator connection configuration.

The coordinator is reached over HTTP(S). TLS verification uses, in order:
an explicit CA file, a per-host CA file inside the certificate directory
(``<dir>/<host>.crt``), or no custom trust at all. Verification is skipped by
default so that the first contact can bootstrap the trust chain.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..models.coordinator import RunnerCredentials


class CoordinatorConfig(BaseSettings):
    """Coordinator connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
    )

    # -- Endpoint ---------------------------------------------------------------
    url: str = Field(default="", alias="ci_server_url")
    token: str = Field(default="", alias="ci_server_token")

    # -- TLS ---------------------------------------------------------------------
    tls_ca_file: str | None = Field(
        default=None,
        alias="ci_server_tls_ca_file",
        description="Path to the CA bundle used to verify the coordinator.",
    )
    certificate_directory: str | None = Field(
        default=None,
        alias="ci_certificate_directory",
        description=(
            "Directory holding per-host CA bundles named '<host>.crt'. "
            "Used when no explicit CA file is configured."
        ),
    )
    tls_skip_verify: bool = Field(
        default=True,
        alias="ci_tls_skip_verify",
        description="Skip TLS certificate verification. Production setups should disable this.",
    )

    # -- Timeouts ----------------------------------------------------------------
    connect_timeout: float = Field(default=30.0, gt=0, alias="ci_connect_timeout")
    keepalive_expiry: float = Field(default=30.0, gt=0, alias="ci_keepalive_expiry")

    # -- Validators ----------------------------------------------------------------

    @field_validator("tls_ca_file", "certificate_directory", mode="before")
    @classmethod
    def _empty_string_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to ``None``.

        Environment files commonly carry ``CI_SERVER_TLS_CA_FILE=""`` which
        would otherwise be treated as a CA file named ``""``.
        """
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    @field_validator("url", mode="before")
    @classmethod
    def _strip_url(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v

    # -- Helpers -------------------------------------------------------------------

    def credentials(self) -> RunnerCredentials:
        """Build the immutable credentials handed to the coordinator client."""
        return RunnerCredentials(url=self.url, token=self.token, tls_ca_file=self.tls_ca_file)
