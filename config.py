import os


class Config:
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))

    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DB_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "instance", "mirage_pos.db"),
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "mirage-pos-dev-key")

    # Bootstrap account created whenever the user table is empty.
    ADMIN_USER = os.getenv("ADMIN_USER", "Administrator")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "Campion#123")

    LOG_DIR = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    BACKUP_DIR = os.getenv("BACKUP_DIR", "")
    BACKUP_INTERVAL_HOURS = int(os.getenv("BACKUP_INTERVAL_HOURS", 0))

    LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", 5))
    CURRENCY_LABEL = os.getenv("CURRENCY_LABEL", "LKR")
    SYNC_CHANNEL = os.getenv("SYNC_CHANNEL", "mirage_pos_sync")

    DEFAULT_VENDORS = (
        ("General Vendor", "N/A"),
        ("Saman Crafts", "077-1234567"),
    )
