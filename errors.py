class LotteryError(Exception):
    """Base for every error surfaced to callers.

    ``lines`` carries the per-line breakdown (``"SUPER-123 → attempted 5,
    remaining 2"``) when a rejection concerns individual bet lines.
    """

    status_code = 400

    def __init__(self, message, lines=None):
        super().__init__(message)
        self.message = message
        self.lines = list(lines or [])

    def to_dict(self):
        body = {"message": self.message}
        if self.lines:
            body["lines"] = self.lines
        return body

    def __str__(self):
        if not self.lines:
            return self.message
        return "\n".join([self.message, *self.lines])


class ValidationError(LotteryError):
    status_code = 400


class ConfigurationMissing(LotteryError):
    status_code = 400


class WindowBlocked(LotteryError):
    status_code = 403


class DateBlocked(LotteryError):
    status_code = 400


class QuotaExceeded(LotteryError):
    status_code = 400


class OverrideExceeded(LotteryError):
    status_code = 400


class NotFound(LotteryError):
    status_code = 404


class PersistenceError(LotteryError):
    status_code = 500
