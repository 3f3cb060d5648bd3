import os

from pytz import timezone


def _flag(value):
    return str(value).strip().lower() not in ("0", "false", "no", "off", "")


def configure(app, overrides=None):
    """Load settings from the environment, then apply explicit overrides."""
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get("DATABASE_URL", "sqlite:///lottery.db")
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.environ.get("SECRET_KEY", "default_secret_key")

    app.config['LOTTERY_TZ'] = os.environ.get("LOTTERY_TZ", "Asia/Kolkata")
    app.config['REPORT_CACHE_TTL'] = int(os.environ.get("REPORT_CACHE_TTL", 300))
    app.config['REPORT_CACHE_SIZE'] = int(os.environ.get("REPORT_CACHE_SIZE", 256))
    app.config['DEFAULT_TICKET_CAP'] = int(os.environ.get("DEFAULT_TICKET_CAP", 9999))
    app.config['DEFAULT_RATE'] = float(os.environ.get("DEFAULT_RATE", 10))
    app.config['BILL_START'] = int(os.environ.get("BILL_START", 1))
    app.config['SCHEDULER_ENABLED'] = _flag(os.environ.get("SCHEDULER_ENABLED", "1"))

    if overrides:
        app.config.update(overrides)

    # fail early on a bad zone name
    app.config['TZ'] = timezone(app.config['LOTTERY_TZ'])
    return app.config
