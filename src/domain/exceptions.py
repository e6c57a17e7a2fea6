from datetime import datetime
from typing import Optional

class GitHubReposException(Exception):
    """Base exception for all repository loading errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

class RateLimitExceededException(GitHubReposException):
    """Raised when GitHub answers the repository listing with 403."""
    def __init__(self, reset_at: Optional[datetime] = None):
        self.reset_at = reset_at
        message = "Límite de API alcanzado."
        if reset_at is not None:
            message = f"Límite de API alcanzado. Se reiniciará a las {reset_at.astimezone().strftime('%H:%M:%S')}"
        super().__init__(message)

class UserNotFoundException(GitHubReposException):
    """Raised when the GitHub user does not exist."""
    def __init__(self, username: str):
        self.username = username
        super().__init__(f'Usuario "{username}" no encontrado en GitHub')

class FetchFailedException(GitHubReposException):
    """Raised on any other non-success response."""
    def __init__(self, status: int):
        self.status = status
        super().__init__(f"Error {status}: No se pudieron cargar los repositorios")

class NetworkException(GitHubReposException):
    """Raised when no response arrived at all."""
    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__("Error de red: No se pudieron cargar los repositorios")

class CacheStoreException(GitHubReposException):
    """Raised when a cache store operation fails."""
    pass
