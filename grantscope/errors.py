"""
Exception hierarchy shared by the services, the API and the orchestrator.
"""


class GrantScopeError(Exception):
    """Base class for all GrantScope errors"""


class PDFExtractionError(GrantScopeError):
    """The uploaded bytes could not be turned into text"""


class AnalysisError(GrantScopeError):
    """The LLM call failed or returned something that is not a JSON object"""


class ExtractionError(GrantScopeError):
    """A remote pipeline stage failed for one document"""

    def __init__(self, message: str, stage: str = "", status_code: int = None):
        super().__init__(message)
        self.stage = stage
        self.status_code = status_code


class InvalidTransition(GrantScopeError):
    """A document status change that the state machine does not allow"""
