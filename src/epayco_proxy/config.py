import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKER = "your_"


def is_configured(value: str | None) -> bool:
    return bool(value) and PLACEHOLDER_MARKER not in value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    epayco_public_key: str = ""
    epayco_private_key: str = ""
    epayco_login_url: str = "https://apify.epayco.co/login"
    epayco_session_url: str = "https://apify.epayco.co/payment/session/create"
    epayco_transaction_url: str = "https://secure.epayco.co/validation/v1/reference"
    response_url: str = ""
    default_response_url: str = "http://localhost:3002/transaction-result.html"
    backend_url: str | None = None
    host: str = "0.0.0.0"
    port: int = 3001
    environment: str = "development"
    http_timeout: float = 30.0
    webhook_capacity: int = 100
    tunnel_enabled: bool = True
    tunnel_command: list[str] = ["npx", "localtunnel"]
    tunnel_timeout: float = 10.0
    tunnel_url_pattern: str = r"https://[a-z0-9\-.]+\.loca\.lt"
    log_level: str = "INFO"
    log_format: str = "pretty"

    @property
    def public_key_configured(self) -> bool:
        return is_configured(self.epayco_public_key)

    @property
    def private_key_configured(self) -> bool:
        return is_configured(self.epayco_private_key)

    @property
    def response_url_configured(self) -> bool:
        return is_configured(self.response_url)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def local_base_url(self) -> str:
        """
        Base URL used for callbacks when no public tunnel is up.

        BACKEND_URL, when set, replaces ``http://localhost:<port>`` here, so
        a deployment with a public address gets a reachable confirmation URL
        without running a tunnel. With BACKEND_URL unset this is plain
        localhost.
        """
        if self.backend_url:
            return self.backend_url.rstrip("/")
        return f"http://localhost:{self.port}"

    def effective_response_url(self) -> str:
        return self.response_url if self.response_url_configured else self.default_response_url

    def warn_if_unconfigured(self) -> list[str]:
        missing = []
        if not self.public_key_configured:
            missing.append("EPAYCO_PUBLIC_KEY")
        if not self.private_key_configured:
            missing.append("EPAYCO_PRIVATE_KEY")
        if not self.response_url_configured:
            missing.append("RESPONSE_URL")
        for name in missing:
            logger.warning("%s is not configured (unset or placeholder value)", name)
        return missing
