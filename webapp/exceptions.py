"""Custom exception classes for the web application."""


class DriveException(Exception):
    """
    Base exception class for all storage application errors.
    """
    code = "INTERNAL_ERROR"


class ValidationError(DriveException):
    """
    Raised when request input is missing or malformed.
    """
    code = "VALIDATION_ERROR"


class InvalidOperationError(ValidationError):
    """
    Raised when a well-formed request asks for something that makes no sense,
    such as sharing a file with its own owner.
    """
    code = "INVALID_OPERATION"


class InvalidDestinationError(ValidationError):
    """
    Raised when a move destination is missing, foreign, not a folder,
    or inside the node being moved.
    """
    code = "INVALID_DESTINATION"


class InvalidCredentialsError(DriveException):
    """
    Raised when login credentials are invalid.
    """
    code = "INVALID_CREDENTIALS"


class InvalidTokenError(DriveException):
    """
    Raised when an access token is missing, malformed or expired.
    """
    code = "UNAUTHORIZED"


class PermissionDeniedError(DriveException):
    """
    Raised when a user attempts an operation on a node they may not touch.
    """
    code = "PERMISSION_DENIED"


class NotFoundError(DriveException):
    """
    Raised when a requested user, file or folder does not exist.
    """
    code = "NOT_FOUND"


class UserNotFoundError(NotFoundError):
    pass


class NodeNotFoundError(NotFoundError):
    pass


class ConflictError(DriveException):
    """
    Raised when the request collides with existing state.
    """
    code = "CONFLICT"


class UserAlreadyExistsError(ConflictError):
    """
    Raised when attempting to register an email that already exists.
    """
    code = "USER_ALREADY_EXISTS"


class FolderNotEmptyError(ConflictError):
    """
    Raised when deleting a non-empty folder under the 'reject' policy.
    """
    code = "FOLDER_NOT_EMPTY"


class StoreUnavailableError(DriveException):
    """
    Raised when the metadata store or blob store is unreachable or misconfigured.
    """
    code = "STORE_UNAVAILABLE"


class InternalError(DriveException):
    """
    Raised for unexpected internal states.
    """
    code = "INTERNAL_ERROR"


class HierarchyCorruptionError(InternalError):
    """
    Raised when an ancestor walk exceeds the number of nodes the owner has,
    which means the stored parent chain already contains a cycle.
    """
    pass
