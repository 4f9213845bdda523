"""
Exception types for the SEO analysis engine
"""


class SEOEngineError(Exception):
    """Base exception for engine errors"""
    pass


class ValidationError(SEOEngineError):
    """Raised when an id or payload is malformed, before any work starts"""
    pass


class NotFoundError(SEOEngineError):
    """Raised when referenced content or a tracked record does not exist"""
    pass


class ExternalProviderError(SEOEngineError):
    """Raised when an injected provider times out or reports an error"""

    def __init__(self, message: str, provider: str = "", status_code: int = 0):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class PersistenceError(SEOEngineError):
    """Raised when the backing store cannot be read or written"""
    pass
