import os


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///data.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

    # Scheduling
    DAILY_REPETITION_CAP = int(os.getenv("DAILY_REPETITION_CAP", "5"))
    BACKLOG_CAP_MULTIPLIER = int(os.getenv("BACKLOG_CAP_MULTIPLIER", "2"))
    DISTRIBUTION_WEEKS_AHEAD = int(os.getenv("DISTRIBUTION_WEEKS_AHEAD", "4"))

    STATS_CACHE_MAX_AGE_SECONDS = float(os.getenv("STATS_CACHE_MAX_AGE_SECONDS", "30"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Save the default weekly rotation on first start so every lookup shares it
    SEED_DEFAULT_PLAN = os.getenv("SEED_DEFAULT_PLAN", "true").lower() == "true"


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    DAILY_REPETITION_CAP = 5
    BACKLOG_CAP_MULTIPLIER = 2
    DISTRIBUTION_WEEKS_AHEAD = 4
    STATS_CACHE_MAX_AGE_SECONDS = 30.0
    SEED_DEFAULT_PLAN = False
