"""
Domain errors raised by the asset services.

Each class carries the HTTP status the API reports it with; the mapping to
responses lives in ``itam.main``.
"""


class AssetManagerError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(AssetManagerError):
    status_code = 400


class InvalidDomainAccount(ValidationFailed):
    pass


class PairTypeMismatch(ValidationFailed):
    pass


class NotFound(AssetManagerError):
    status_code = 404


class AssetInUse(AssetManagerError):
    status_code = 409


class IneligibleStatus(AssetManagerError):
    status_code = 409


class DuplicateSerial(AssetManagerError):
    status_code = 409


class ConcurrentModification(AssetManagerError):
    status_code = 409
