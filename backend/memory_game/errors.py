"""Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status and a short machine-readable code so the
app-level handler can render it without knowing where it was raised.
"""
from typing import Any, Dict, List, Optional


class GameError(Exception):
    status_code = 500
    code = 'internal_error'
    default_message = 'Something went wrong'

    def __init__(self, message: Optional[str] = None, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'success': False,
            'error': self.code,
            'message': self.message,
        }
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(GameError):
    status_code = 400
    code = 'validation_failed'
    default_message = 'Please check your input data'


class ConfigurationError(GameError):
    status_code = 400
    code = 'unknown_difficulty'
    default_message = 'Unknown difficulty tier'


class NotFoundError(GameError):
    status_code = 404
    code = 'not_found'
    default_message = 'Not found'


class SessionNotFoundError(NotFoundError):
    code = 'session_not_found'
    default_message = "This game session has expired or doesn't exist"


class UserNotFoundError(NotFoundError):
    code = 'user_not_found'
    default_message = 'User not found'


class ConflictError(GameError):
    status_code = 400
    code = 'conflict'
    default_message = 'Request conflicts with the current state'


class AlreadyCompletedError(ConflictError):
    code = 'already_completed'
    default_message = 'This game is already finished'


class AlreadyMatchedError(ConflictError):
    code = 'already_matched'
    default_message = 'These cards are already matched'


class ConcurrentUpdateError(ConflictError):
    status_code = 409
    code = 'concurrent_update'
    default_message = 'The session changed while this request was processed, retry'


class InvalidCardError(GameError):
    status_code = 400
    code = 'invalid_card'
    default_message = "Those cards don't exist in this game"


class TransientStoreError(GameError):
    status_code = 500
    code = 'store_unavailable'
    default_message = 'A backing store is temporarily unavailable'


class RateLimitedError(GameError):
    status_code = 429
    code = 'rate_limited'
    default_message = 'Too many requests from this IP, please try again later'
