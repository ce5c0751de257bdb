import os


def _env_bool(key: str, default: str) -> bool:
    return os.getenv(key, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Application configuration, read once from the environment.

    Values are plain attributes so they can be adjusted at runtime
    (tests disable transactions and background delays this way).
    """

    def __init__(self):
        # MongoDB
        self.MONGO_URL = os.getenv("MONGO_URL", "mongodb://127.0.0.1:27017")
        self.MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "learnsy")
        # Requires a replica set or Atlas cluster
        self.MONGO_TRANSACTIONS = _env_bool("MONGO_TRANSACTIONS", "true")

        # JWT
        # No default: checked by require_secrets() at startup
        self.JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))

        # Uploads
        self.UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
        self.MAX_MATERIAL_SIZE_MB = int(os.getenv("MAX_MATERIAL_SIZE_MB", "50"))
        self.MAX_AI_UPLOAD_SIZE_MB = int(os.getenv("MAX_AI_UPLOAD_SIZE_MB", "100"))

        # Payments
        self.UPI_ID = os.getenv("UPI_ID", "learnsy@upi")
        self.UPI_MERCHANT_NAME = os.getenv("UPI_MERCHANT_NAME", "Learnsy")
        self.PAYMENT_VERIFY_DELAY = float(os.getenv("PAYMENT_VERIFY_DELAY", "1.0"))

        # Simulated AI processing
        self.AI_PROCESSING_DELAY_SCALE = float(os.getenv("AI_PROCESSING_DELAY_SCALE", "1.0"))

        # Rate limits: requests per window (seconds)
        self.SIGNUP_RATE_LIMIT = int(os.getenv("SIGNUP_RATE_LIMIT", "100"))
        self.LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", "10"))
        self.RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", str(15 * 60)))

        self.VERSION = os.getenv("VERSION", "1.0.0")

    @staticmethod
    def _require(key: str, value) -> str:
        """Return a required setting or crash"""
        if not value:
            raise RuntimeError(f"❌ FATAL: Missing required environment variable: {key}")
        return value

    def require_secrets(self):
        self._require("JWT_SECRET_KEY", self.JWT_SECRET_KEY)

    @property
    def jwt_secret(self) -> str:
        return self._require("JWT_SECRET_KEY", self.JWT_SECRET_KEY)

    @property
    def materials_dir(self) -> str:
        return os.path.join(self.UPLOAD_DIR, "materials")

    @property
    def ai_uploads_dir(self) -> str:
        return os.path.join(self.UPLOAD_DIR, "ai-tools")


settings = Settings()
