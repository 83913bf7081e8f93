"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, Stripe and Vapi keys, session secret)
- Holds the subscription plan catalog
- Validates configuration on startup
"""

from pydantic import Field, validator
from pydantic_settings import BaseSettings
from typing import Optional, Literal, List, Dict, Any


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="voicedesk",
        description="MongoDB database name"
    )

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = Field(
        default=None,
        description="Stripe secret API key"
    )
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(
        default=None,
        description="Stripe webhook signing secret"
    )
    STRIPE_API_VERSION: str = Field(
        default="2023-08-16",
        description="Pinned Stripe API version"
    )
    STRIPE_PRICE_STARTER: Optional[str] = Field(default=None, description="Stripe price id for Starter Plan")
    STRIPE_PRICE_PROFESSIONAL: Optional[str] = Field(default=None, description="Stripe price id for Professional Plan")
    STRIPE_PRICE_BUSINESS: Optional[str] = Field(default=None, description="Stripe price id for Business Plan")
    STRIPE_PRICE_ENTERPRISE: Optional[str] = Field(default=None, description="Stripe price id for Enterprise Plan")
    STRIPE_PRICE_ENTERPRISE_PLUS: Optional[str] = Field(default=None, description="Stripe price id for Enterprise Plus Plan")

    # Vapi (voice assistant platform)
    VAPI_BASE_URL: str = Field(
        default="https://api.vapi.ai",
        description="Vapi REST API base URL"
    )
    VAPI_PRIVATE_KEY: Optional[str] = Field(
        default=None,
        description="Vapi private API key"
    )
    VAPI_TIMEOUT: int = Field(
        default=30,
        description="Vapi request timeout in seconds"
    )
    VAPI_BYO_CREDENTIAL_ID: Optional[str] = Field(
        default=None,
        description="Fallback credential id for bring-your-own number imports"
    )
    MAX_PHONE_NUMBERS_PER_USER: int = Field(
        default=3,
        description="Maximum phone numbers assigned per account"
    )

    APP_URL: str = Field(
        default="http://localhost:3000/dashboard",
        description="Dashboard URL used as the default billing portal return URL"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # Security
    SECRET_KEY: str = Field(
        default="change-me-in-production",
        description="Secret used to verify dashboard session tokens"
    )
    SESSION_ALGORITHM: str = Field(
        default="HS256",
        description="Session token signing algorithm"
    )

    @validator("SECRET_KEY")
    def validate_secret_key(cls, v, values):
        """Ensure secret key is changed in production."""
        if values.get("ENVIRONMENT") == "production" and v == "change-me-in-production":
            raise ValueError("SECRET_KEY must be changed in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def plans(self) -> List[Dict[str, Any]]:
        """
        Subscription plan catalog.

        amountTotal is the Stripe amount in cents; legacy purchase records
        are matched against it when no price id is available.
        """
        return [
            {"name": "Starter Plan", "priceId": self.STRIPE_PRICE_STARTER,
             "amountTotal": 9900, "price": 99, "minutes": 80},
            {"name": "Professional Plan", "priceId": self.STRIPE_PRICE_PROFESSIONAL,
             "amountTotal": 24900, "price": 249, "minutes": 250},
            {"name": "Business Plan", "priceId": self.STRIPE_PRICE_BUSINESS,
             "amountTotal": 49900, "price": 499, "minutes": 600},
            {"name": "Enterprise Plan", "priceId": self.STRIPE_PRICE_ENTERPRISE,
             "amountTotal": 99900, "price": 999, "minutes": 1500},
            {"name": "Enterprise Plus Plan", "priceId": self.STRIPE_PRICE_ENTERPRISE_PLUS,
             "amountTotal": 199900, "price": 1999, "minutes": 3500},
        ]

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    # Production-specific validations
    if settings.is_production:
        if not settings.STRIPE_SECRET_KEY:
            errors.append("STRIPE_SECRET_KEY is required in production")
        if not settings.STRIPE_WEBHOOK_SECRET:
            errors.append("STRIPE_WEBHOOK_SECRET is required in production")
        if not settings.VAPI_PRIVATE_KEY:
            errors.append("VAPI_PRIVATE_KEY is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
