"""Central environment-driven settings for the payment gateway.

Loaded once at import time. Provider credentials are optional: a provider
without credentials is served by the simulation path instead of failing
startup (see `.env.example`).
"""

from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class MtnCredentials:
    """Read-only view of the MTN MoMo collection credentials."""

    base_url: str
    primary_key: str | None
    api_user_id: str | None
    api_key: str | None
    environment: str
    currency: str
    callback_url: str | None
    token_safety_margin_seconds: int

    @property
    def configured(self) -> bool:
        return bool(self.primary_key and self.api_user_id and self.api_key)


@dataclass(frozen=True)
class OrangeCredentials:
    """Read-only view of the Orange Money web-payment credentials."""

    base_url: str
    client_id: str | None
    client_secret: str | None
    merchant_key: str | None
    currency: str
    lang: str
    return_url: str
    cancel_url: str
    notif_url: str
    token_safety_margin_seconds: int

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.merchant_key)


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "payment-gateway"
    log_level: str = "INFO"
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    public_base_url: str = "http://localhost:3000"
    internal_api_key: str | None = None

    provider_timeout_seconds: float = 15.0
    simulation_delay_scale: float = 1.0
    simulation_mtn_success_rate: float = 0.9
    simulation_orange_success_rate: float = 0.85
    status_completion_rate: float = 0.7

    mtn_momo_api_base_url: str = "https://sandbox.momodeveloper.mtn.com"
    mtn_momo_primary_key: str | None = None
    mtn_momo_api_user_id: str | None = None
    mtn_momo_api_key: str | None = None
    mtn_momo_environment: str = "sandbox"
    # The sandbox only settles in EUR.
    mtn_momo_currency: str = "EUR"
    mtn_momo_callback_url: str | None = None
    mtn_token_safety_margin_seconds: int = 600

    orange_money_api_base_url: str = "https://api.orange.com/orange-money-webpay/cm/v1"
    orange_money_client_id: str | None = None
    orange_money_client_secret: str | None = None
    orange_money_merchant_key: str | None = None
    orange_money_currency: str = "XOF"
    orange_money_lang: str = "fr"
    orange_money_return_url: str | None = None
    orange_money_cancel_url: str | None = None
    orange_money_notif_url: str | None = None
    orange_token_safety_margin_seconds: int = 60

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def mtn_credentials(self) -> MtnCredentials:
        return MtnCredentials(
            base_url=self.mtn_momo_api_base_url.rstrip("/"),
            primary_key=self.mtn_momo_primary_key,
            api_user_id=self.mtn_momo_api_user_id,
            api_key=self.mtn_momo_api_key,
            environment=self.mtn_momo_environment,
            currency=self.mtn_momo_currency,
            callback_url=self.mtn_momo_callback_url,
            token_safety_margin_seconds=self.mtn_token_safety_margin_seconds,
        )

    def orange_credentials(self) -> OrangeCredentials:
        base = self.public_base_url.rstrip("/")
        return OrangeCredentials(
            base_url=self.orange_money_api_base_url.rstrip("/"),
            client_id=self.orange_money_client_id,
            client_secret=self.orange_money_client_secret,
            merchant_key=self.orange_money_merchant_key,
            currency=self.orange_money_currency,
            lang=self.orange_money_lang,
            return_url=self.orange_money_return_url or f"{base}/api/payment/orange/callback",
            cancel_url=self.orange_money_cancel_url or f"{base}/checkout",
            notif_url=self.orange_money_notif_url or f"{base}/api/payment/orange/webhook",
            token_safety_margin_seconds=self.orange_token_safety_margin_seconds,
        )


settings = CommonSettings()
