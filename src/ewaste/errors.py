"""Domain errors.

Every error the API can return on purpose is an APIError carrying its
HTTP status. main.py maps them to the uniform
{"status", "message", "errorMessage"} body at the boundary.
"""


class APIError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


# ─── Lookups ────────────────────────────────────────────


class NotFoundError(APIError):
    status_code = 404


class BinNotFoundError(NotFoundError):
    def __init__(self, sensor_id: str):
        super().__init__("Bin not found")
        self.sensor_id = sensor_id


class UserNotFoundError(NotFoundError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class UnknownSensorError(NotFoundError):
    """Registration against a sensor id with no bin. Reported as 400."""

    status_code = 400

    def __init__(self, sensor_id: str):
        super().__init__(f"Invalid sensor ID of {sensor_id}")
        self.sensor_id = sensor_id


# ─── Registration / login ───────────────────────────────


class ConflictError(APIError):
    status_code = 400


class InvalidCredentialsError(APIError):
    status_code = 400

    def __init__(self):
        super().__init__("Email / Password is incorrect")


# ─── Token verification ─────────────────────────────────


class AuthenticationError(APIError):
    status_code = 401


class TokenExpiredError(AuthenticationError):
    def __init__(self):
        super().__init__("Token expired")


class TokenInvalidError(AuthenticationError):
    def __init__(self):
        super().__init__("Token is not valid")


# ─── Notification dispatch ──────────────────────────────


class UnassignedBinError(APIError):
    status_code = 400

    def __init__(self, sensor_id: str):
        super().__init__(f"Bin {sensor_id} has no registered user")
        self.sensor_id = sensor_id


class MissingDeviceTokenError(APIError):
    status_code = 400

    def __init__(self, sensor_id: str):
        super().__init__(f"Owner of bin {sensor_id} has no registered device")
        self.sensor_id = sensor_id


class UpstreamFailureError(APIError):
    status_code = 502
