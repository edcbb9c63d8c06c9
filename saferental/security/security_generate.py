import hashlib
import hmac
import secrets
import uuid

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp_code() -> str:
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def generate_upload_name(field: str, extension: str) -> str:
    return f"{field}-{uuid.uuid4().hex}{extension.lower()}"


def hmac_sha256(value: str, secret: str) -> str:
    return hmac.new(
        key=secret.encode(),
        msg=value.encode(),
        digestmod=hashlib.sha256,
    ).hexdigest()


def codes_match(submitted: str, expected: str) -> bool:
    return hmac.compare_digest(submitted.encode(), expected.encode())
