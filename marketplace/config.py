from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DB: str = "marketplace"
    REDIS_URL: str = "redis://localhost:6379/0"
    USER_MANAGEMENT_URL: str = "http://user-management:8000"
    SITE_ORIGIN: str = "http://localhost:8080"
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: List[str] = ["http://localhost:8080", "https://*.vercel.app"]
    # Public category list cache
    CATEGORY_CACHE_TTL_SECONDS: float = 60.0
    RATE_LIMIT_ENABLED: bool = True
    # Razorpay
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""
    RAZORPAY_API_BASE: str = "https://api.razorpay.com/v1"
    # PhonePe (used when admin_settings.payment.phonePe is missing or incomplete)
    PHONEPE_MERCHANT_ID: str = ""
    PHONEPE_SALT_KEY: str = ""
    PHONEPE_SALT_INDEX: str = "1"
    PHONEPE_TEST_MODE: bool = True
    PHONEPE_SANDBOX_BASE: str = "https://api-preprod.phonepe.com/apis/pg-sandbox"
    PHONEPE_PROD_BASE: str = "https://api.phonepe.com/apis/hermes"
    PAYMENT_HTTP_TIMEOUT: float = 15.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
