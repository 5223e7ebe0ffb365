# API error taxonomy, mapped to the response envelope in app.py


class ApiError(Exception):
    """Base class for errors reported to the client with status 'fail'"""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'status': 'fail', 'message': self.message}


class ValidationError(ApiError):
    """Missing or malformed required field"""
    status_code = 400


class ConflictError(ApiError):
    """Room unavailable, duplicate room number, duplicate email"""
    status_code = 400


class UploadError(ApiError):
    """File type, size or storage provider failure"""
    status_code = 400


class NotFoundError(ApiError):
    """Unknown id, or requested page beyond the last page"""
    status_code = 404


class UnauthorizedError(ApiError):
    status_code = 401


class ForbiddenError(ApiError):
    status_code = 403
