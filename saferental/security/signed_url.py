import hmac
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from urllib.parse import urlencode

from saferental.core.date_helper import from_epoch_millis, to_epoch_millis, utcnow
from saferental.core.exceptions import (
    ConfigurationError,
    Forbidden,
    InvalidSignature,
    NotFound,
    SignedUrlExpired,
)
from saferental.models.enums import FileRole

from .security_generate import hmac_sha256

UPLOAD_URL_PREFIX = "/uploads/"


@dataclass(frozen=True)
class SignedUrl:
    url: str
    expires_at: datetime


class SignedFileGateway:
    """Capability tokens for uploaded identity documents.

    The signature is the only proof of authorization a download URL carries,
    so it covers every field the download handler trusts.
    """

    def __init__(
        self,
        secret: str | None,
        upload_root: Path,
        ttl: timedelta = timedelta(hours=1),
        download_path: str = "/api/files/download",
    ):
        if not secret:
            raise ConfigurationError(
                "FILE_SIGNING_SECRET must be set to serve identity documents"
            )
        self._secret = secret
        self.upload_root = Path(upload_root).resolve()
        self.ttl = ttl
        self.download_path = download_path.rstrip("/")

    def sign(
        self,
        agreement_id: uuid.UUID | str,
        file_role: FileRole,
        email: str,
        expires: int,
    ) -> str:
        payload = f"{agreement_id}:{FileRole(file_role).value}:{email}:{expires}"
        return hmac_sha256(payload, self._secret)

    def issue(
        self,
        agreement_id: uuid.UUID,
        file_role: FileRole,
        email: str,
        now: datetime | None = None,
    ) -> SignedUrl:
        expires = to_epoch_millis((now or utcnow()) + self.ttl)
        signature = self.sign(agreement_id, file_role, email, expires)
        query = urlencode({"signature": signature, "expires": expires, "email": email})
        url = f"{self.download_path}/{agreement_id}/{FileRole(file_role).value}?{query}"
        return SignedUrl(url=url, expires_at=from_epoch_millis(expires))

    def verify(
        self,
        agreement_id: str,
        file_role: str,
        signature: str,
        expires: str | int,
        email: str,
        now: datetime | None = None,
    ) -> None:
        try:
            expires_ms = int(expires)
            role = FileRole(file_role)
        except ValueError:
            raise InvalidSignature()

        if to_epoch_millis(now or utcnow()) > expires_ms:
            raise SignedUrlExpired()

        expected = self.sign(agreement_id, role, email, expires_ms)
        if not hmac.compare_digest(expected.encode(), signature.encode()):
            raise InvalidSignature()

    def resolve_path(self, document_ref: str | None) -> Path:
        if not document_ref:
            raise NotFound("File not found")

        name = document_ref
        if name.startswith(UPLOAD_URL_PREFIX):
            name = name[len(UPLOAD_URL_PREFIX):]

        candidate = (self.upload_root / name).resolve()
        if not candidate.is_relative_to(self.upload_root):
            raise Forbidden("Invalid file path")
        if not candidate.is_file():
            raise NotFound("File not found on disk")
        return candidate
