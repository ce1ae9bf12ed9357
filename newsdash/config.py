from dataclasses import dataclass, field
import os

from dotenv import load_dotenv


def _split_csv(value):
    return [part.strip() for part in (value or "").split(",") if part.strip()]


@dataclass
class Settings:
    google_client_id: str = None
    google_client_secret: str = None
    base_url: str = "http://localhost:3000"
    property_id: str = None  # numeric id, e.g. "123456789"
    session_secret: str = "newsdash-dev-secret"
    port: int = 3000
    realtime_ttl: int = 10
    report_ttl: int = 300
    cors_origins: list = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    secure_cookies: bool = False

    @property
    def property_name(self):
        return f"properties/{self.property_id}" if self.property_id else None

    @property
    def redirect_uri(self):
        return f"{self.base_url.rstrip('/')}/auth/google/callback"

    @classmethod
    def from_env(cls):
        """Read settings from the environment (and a local .env file).

        GA4_PROPERTY_ID is deliberately not checked here; a missing id
        surfaces as an upstream failure on the first report call.
        """
        load_dotenv()
        port = int(os.getenv("PORT", "3000"))
        secure = os.getenv("SESSION_COOKIE_SECURE")
        if secure is None:
            secure = os.getenv("FLASK_ENV") == "production"
        else:
            secure = secure.lower() in ("1", "true", "yes")
        return cls(
            google_client_id=os.getenv("GOOGLE_CLIENT_ID"),
            google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
            base_url=os.getenv("BASE_URL", f"http://localhost:{port}"),
            property_id=os.getenv("GA4_PROPERTY_ID"),
            session_secret=os.getenv("SESSION_SECRET", "newsdash-dev-secret"),
            port=port,
            realtime_ttl=int(os.getenv("GA4_CACHE_TTL_SEC", "10")),
            report_ttl=int(os.getenv("GA4_REPORT_CACHE_TTL_SEC", "300")),
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS", "*")) or ["*"],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            secure_cookies=secure,
        )
