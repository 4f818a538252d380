class QuizError(Exception):
    """Base class for recoverable quiz failures."""


class QuestionSourceUnavailable(QuizError):
    """The question source failed or returned nothing usable."""


class InvalidTransition(QuizError):
    """An action was applied in a state that does not accept it."""

    def __init__(self, action: str, phase: str, message: str):
        super().__init__(message)
        self.action = action
        self.phase = phase


class AlreadyAnswered(InvalidTransition):
    """An option was selected for a question that already has an answer."""


class PersistenceFailure(QuizError):
    """The profile store could not record a finished quiz."""
