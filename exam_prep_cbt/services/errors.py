"""
services/errors.py

Errors that reach the HTTP layer. Everything else in the attempt core is
absorbed as a no-op.
"""


class DefinitionNotFound(LookupError):
    """The test code does not resolve to a stored definition."""

    def __init__(self, test_code: str):
        super().__init__(f"Test '{test_code}' was not found.")
        self.test_code = test_code


class EmptyQuestionSet(ValueError):
    """The definition exists but has no questions to attempt."""

    def __init__(self, test_code: str):
        super().__init__(f"Test '{test_code}' has no questions.")
        self.test_code = test_code


class PersistenceFailure(RuntimeError):
    """The report could not be written. The attempt stays frozen and can be resubmitted."""
