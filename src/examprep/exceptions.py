class ExamPrepError(Exception):
    """Base class for study session errors."""


class GenerationError(ExamPrepError):
    """The model call failed or its response held no usable item array."""


class MalformedQuestionError(ExamPrepError):
    """A generated batch contained an item that cannot be studied."""


class PersistenceError(ExamPrepError):
    """A completed session could not be written to the store."""
