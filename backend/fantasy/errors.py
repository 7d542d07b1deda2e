"""Error kinds raised by the fantasy services.

Routes let these propagate; ``create_app`` turns them into JSON responses.
"""


class FantasyError(Exception):
    status_code = 400
    kind = None

    def __init__(self, message, kind=None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def to_dict(self):
        payload = {'error': self.message}
        if self.kind:
            payload['kind'] = self.kind
        return payload


class ValidationError(FantasyError):
    status_code = 400


class NotFoundError(FantasyError):
    status_code = 404


class PreconditionError(FantasyError):
    """A contest join precondition failed.

    ``kind`` is one of ``closed``, ``mismatch``, ``limit``, ``full`` or
    ``duplicate``.
    """
    status_code = 409

    CLOSED = 'closed'
    MISMATCH = 'mismatch'
    LIMIT = 'limit'
    FULL = 'full'
    DUPLICATE = 'duplicate'

    def __init__(self, kind, message):
        super().__init__(message, kind=kind)


class ProviderError(FantasyError):
    status_code = 502
