import os
from decimal import Decimal
from pathlib import Path
from dotenv import load_dotenv

from .enums import TopUpType

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

MIN_PURCHASE_AMOUNT = Decimal("100")
MAX_PURCHASE_AMOUNTS = {
    TopUpType.AIRTIME: Decimal("50000"),
    TopUpType.DATA: Decimal("100000"),
}
MIN_WALLET_TOPUP_AMOUNT = Decimal("5000")
MAX_WALLET_BALANCE = Decimal("8000000")
MAX_BUDGET_AMOUNT = Decimal("10000000")
MAX_PHONE_NUMBERS = 4  # 1 primary + 3 additional
BUDGET_THRESHOLDS = (50, 75, 90, 100)


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'smarttopup.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOCAL_TIMEZONE = os.getenv("LOCAL_TIMEZONE", "Africa/Lagos")
    # Set by the upstream auth gateway after it has verified the session
    AUTH_USER_HEADER = os.getenv("AUTH_USER_HEADER", "X-User-Id")
    SCHEDULE_BATCH_SIZE = int(os.getenv("SCHEDULE_BATCH_SIZE", "50"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOCAL_TIMEZONE = "Africa/Lagos"
    LOG_LEVEL = "WARNING"
