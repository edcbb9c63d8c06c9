class SafeRentalError(Exception):
    status_code: int = 500
    default_message: str = "Something went wrong on our end. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SafeRentalError):
    status_code = 400
    default_message = "Invalid request data."


class NotFound(SafeRentalError):
    status_code = 404
    default_message = "Not found."


class Forbidden(SafeRentalError):
    status_code = 403
    default_message = "You are not allowed to perform this action."


class Expired(SafeRentalError):
    status_code = 400
    default_message = "This code or link has expired."


class OtpExpired(Expired):
    default_message = "OTP expired. Please request a new code."


class SignedUrlExpired(Expired):
    status_code = 401
    default_message = "Signed URL expired."


class CodeMismatch(SafeRentalError):
    status_code = 400
    default_message = "Invalid OTP."


class OtpAlreadyUsed(SafeRentalError):
    status_code = 400
    default_message = "This OTP has already been used."


class OtpSuperseded(SafeRentalError):
    status_code = 400
    default_message = "A newer code was sent. Please use the latest code."


class InvalidSignature(SafeRentalError):
    status_code = 401
    default_message = "Invalid signature."


class NotFullyVerified(SafeRentalError):
    status_code = 400
    default_message = "Agreement not fully verified."


class DeliveryError(SafeRentalError):
    status_code = 502
    default_message = "Could not deliver the message."


class OtpDeliveryError(DeliveryError):
    default_message = "Failed to send OTP. Please try again."


class AllocationError(SafeRentalError):
    status_code = 500
    default_message = "Could not allocate an agreement number."


class ConfigurationError(RuntimeError):
    pass
