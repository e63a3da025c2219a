class LucidError(Exception):
    """Base class for alarm engine errors."""


class PersistenceError(LucidError):
    pass


class NotificationError(LucidError):
    pass


class QuestionServiceError(LucidError):
    pass
