"""
Errors raised by exercise name resolution.
"""


class ExerciseResolutionError(Exception):
    """Base class for exercise resolution failures."""


class CatalogLoadError(ExerciseResolutionError):
    """The reference exercise catalog could not be fetched."""


class AliasPersistenceError(ExerciseResolutionError):
    """Reading or writing a learned alias failed."""
