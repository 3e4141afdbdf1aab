import os

os.environ.setdefault("FINANCE_DATABASE_URL", "sqlite://")
os.environ.setdefault("FINANCE_BCRYPT_ROUNDS", "4")
os.environ.setdefault("FINANCE_TIMEZONE", "UTC")
