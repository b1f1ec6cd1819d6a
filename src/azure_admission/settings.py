"""Centralized controller settings using pydantic-settings.

This module provides a single source of truth for all controller configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Controller configuration loaded from environment variables.

    All settings have sensible defaults for production use. Override via
    environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )
    webhook_log_level: str = Field(
        default="INFO",
        validation_alias="WEBHOOK_LOG_LEVEL",
        description="Log level for admission webhook handlers",
    )

    # Admission webhooks
    enable_webhooks: bool = Field(
        default=True,
        validation_alias="ENABLE_WEBHOOKS",
        description="Register and serve the admission webhooks",
    )
    webhook_host: str = Field(
        default="0.0.0.0",
        validation_alias="WEBHOOK_HOST",
        description="Host address to bind the admission webhook server",
    )
    webhook_port: int = Field(
        default=8443,
        validation_alias="WEBHOOK_PORT",
        description="Port for admission webhook server",
    )
    webhook_cert_dir: str = Field(
        default="/tmp/k8s-webhook-server/serving-certs",
        validation_alias="WEBHOOK_CERT_DIR",
        description="Directory holding tls.crt and tls.key for the webhook server",
    )
    admission_timeout_seconds: float = Field(
        default=25.0,
        validation_alias="ADMISSION_TIMEOUT_SECONDS",
        description="Deadline for answering one admission review",
    )

    # Metrics and observability
    metrics_enabled: bool = Field(
        default=True,
        validation_alias="METRICS_ENABLED",
        description="Serve Prometheus metrics",
    )
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )

    # Installation
    installation_location: str = Field(
        default="",
        validation_alias="INSTALLATION_LOCATION",
        description="Azure region of this installation (empty = any location)",
    )
    base_domain: str = Field(
        default="",
        validation_alias="BASE_DOMAIN",
        description="Base domain used for control plane endpoint hosts",
    )

    # Release catalog
    catalog_read_timeout_seconds: float = Field(
        default=10.0,
        validation_alias="CATALOG_READ_TIMEOUT_SECONDS",
        description="Deadline for listing releases from the Kubernetes API",
    )
    release_components_cache_ttl_seconds: int = Field(
        default=24 * 60 * 60,
        validation_alias="RELEASE_COMPONENTS_CACHE_TTL_SECONDS",
        description="How long release component versions are memoised",
    )

    # Azure inventory
    azure_subscription_id: str = Field(
        default="",
        validation_alias="AZURE_SUBSCRIPTION_ID",
        description="Subscription whose Resource SKUs are queried",
    )
    azure_tenant_id: str = Field(
        default="",
        validation_alias="AZURE_TENANT_ID",
        description="Azure AD tenant of the service principal",
    )
    azure_client_id: str = Field(
        default="",
        validation_alias="AZURE_CLIENT_ID",
        description="Service principal client ID",
    )
    azure_client_secret: str = Field(
        default="",
        validation_alias="AZURE_CLIENT_SECRET",
        description="Service principal client secret",
    )
    azure_resource_manager_url: str = Field(
        default="https://management.azure.com",
        validation_alias="AZURE_RESOURCE_MANAGER_URL",
        description="Azure Resource Manager endpoint",
    )
    azure_login_url: str = Field(
        default="https://login.microsoftonline.com",
        validation_alias="AZURE_LOGIN_URL",
        description="Azure AD authority host",
    )
    azure_sku_api_version: str = Field(
        default="2019-04-01",
        validation_alias="AZURE_SKU_API_VERSION",
        description="api-version used for the Resource SKUs endpoint",
    )
    capability_fetch_timeout_seconds: float = Field(
        default=20.0,
        validation_alias="CAPABILITY_FETCH_TIMEOUT_SECONDS",
        description=(
            "Deadline for fetching the full SKU list of one region, "
            "shorter than the admission deadline"
        ),
    )

    @model_validator(mode="after")
    def _fetch_fits_admission_deadline(self) -> "Settings":
        if self.capability_fetch_timeout_seconds >= self.admission_timeout_seconds:
            raise ValueError(
                "CAPABILITY_FETCH_TIMEOUT_SECONDS must be lower than "
                "ADMISSION_TIMEOUT_SECONDS"
            )
        return self

    @property
    def azure_credentials_configured(self) -> bool:
        """Whether all service principal fields needed for SKU lookups are set."""
        return all(
            [
                self.azure_subscription_id,
                self.azure_tenant_id,
                self.azure_client_id,
                self.azure_client_secret,
            ]
        )


# Global settings instance - initialized once at module import
settings = Settings()
