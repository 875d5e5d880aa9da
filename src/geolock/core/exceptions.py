"""
Exceptions for GeoLock core module
Every failure a workflow can report derives from GeoLockError
"""


class GeoLockError(Exception):
    # general container for errors
    pass


class LocationError(GeoLockError):
    # raised when no location fix can be obtained
    pass


class LocationUnavailable(LocationError):
    # raised when the platform has no usable location source (or it timed out)
    pass


class LocationDenied(LocationError):
    # raised when the user refused location access
    pass


class MissingInput(GeoLockError):
    # raised when a password, payload or ciphertext file was not supplied
    pass


class WrongPasswordOrCorrupt(GeoLockError):
    # raised for any decrypt or parse failure; the cause is never exposed
    def __init__(self, message: str = "Invalid file or password"):
        super().__init__(message)


class MalformedPackage(WrongPasswordOrCorrupt):
    # raised when decrypted plaintext is not a valid package
    pass


class ProximityRejected(GeoLockError):
    # raised when decryption succeeded but the reader is too far away
    def __init__(self, distance: float, radius: float):
        self.distance = distance
        self.radius = radius
        super().__init__(
            f"You must be within {radius:g} meters of the encryption location. "
            f"Current distance: {distance:.2f}m"
        )


class EncryptionFailed(GeoLockError):
    # raised when packaging or encrypting fails
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Encryption failed: {reason}")


class WorkflowBusy(GeoLockError):
    # raised when a workflow is triggered again before it finished
    def __init__(self, message: str = "An operation is already in progress"):
        super().__init__(message)


class DeliveryFailed(GeoLockError):
    # raised when a verified result could not be handed to the download sink
    pass
