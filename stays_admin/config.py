import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _bool(value: str | None, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 720

    app_env: str = "development"
    log_level: str = "INFO"

    payu_merchant_key: str = ""
    payu_merchant_salt: str = ""
    payu_base_url: str = "https://test.payu.in"

    frontend_base_url: str = "https://nirwanastays.com"
    admin_base_url: str = "https://api.nirwanastays.com/admin"
    public_base_url: str = "https://api.nirwanastays.com"

    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    mail_from: str = "bookings@nirwanastays.com"
    mail_bcc: str = "nirwanastays@gmail.com"

    upload_dir: Path = Path("uploads")

    expiry_interval_seconds: float = 30 * 60
    pending_ttl_seconds: float = 60 * 60

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL environment variable is not set")

        jwt_secret = os.getenv("JWT_SECRET")
        if not jwt_secret:
            raise RuntimeError("JWT_SECRET environment variable is not set")

        return cls(
            database_url=database_url,
            jwt_secret=jwt_secret,
            jwt_algorithm=os.getenv("JWT_ALGORITHM") or "HS256",
            jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES") or 720),
            app_env=os.getenv("APP_ENV") or "development",
            log_level=os.getenv("LOG_LEVEL") or "INFO",
            payu_merchant_key=os.getenv("PAYU_MERCHANT_KEY") or "",
            payu_merchant_salt=os.getenv("PAYU_MERCHANT_SALT") or "",
            payu_base_url=os.getenv("PAYU_BASE_URL") or cls.payu_base_url,
            frontend_base_url=os.getenv("FRONTEND_BASE_URL") or cls.frontend_base_url,
            admin_base_url=os.getenv("ADMIN_BASE_URL") or cls.admin_base_url,
            public_base_url=os.getenv("PUBLIC_BASE_URL") or cls.public_base_url,
            smtp_host=os.getenv("SMTP_HOST") or cls.smtp_host,
            smtp_port=int(os.getenv("SMTP_PORT") or 587),
            smtp_username=os.getenv("SMTP_USERNAME") or "",
            smtp_password=os.getenv("SMTP_PASSWORD") or "",
            smtp_use_tls=_bool(os.getenv("SMTP_USE_TLS"), default=True),
            mail_from=os.getenv("MAIL_FROM") or cls.mail_from,
            mail_bcc=os.getenv("MAIL_BCC") or cls.mail_bcc,
            upload_dir=Path(os.getenv("UPLOAD_DIR") or "uploads"),
            expiry_interval_seconds=float(os.getenv("EXPIRY_INTERVAL_SECONDS") or 30 * 60),
            pending_ttl_seconds=float(os.getenv("PENDING_TTL_SECONDS") or 60 * 60),
        )
