# src/storage/services.py
import hashlib
import hmac
import logging
import mimetypes
import os
import urllib.parse
from datetime import datetime, timezone
from typing import Optional

import requests

from clock import utcnow
from config import settings
from exceptions import TransientStoreError, ValidationError
from storage.schemas import ReceiptReference

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "application/pdf": "pdf",
}


def validate_receipt(content_type: Optional[str], size: int) -> None:
    """Reject receipts that are not JPEG/PNG/PDF or exceed the size limit, before any upload."""
    if content_type == "image/jpg":
        content_type = "image/jpeg"
    if content_type not in settings.RECEIPT_ALLOWED_TYPES:
        raise ValidationError("Please upload a valid image (JPEG, PNG) or PDF file")
    if size <= 0:
        raise ValidationError("Receipt file is empty")
    if size > settings.RECEIPT_MAX_BYTES:
        raise ValidationError(f"File size must be less than {settings.RECEIPT_MAX_BYTES // (1024 * 1024)}MB")


class ReceiptStorage:
    """Receipt bucket on an S3 compatible store, signed with AWS Signature V4."""

    def __init__(self):
        self.bucket = settings.RECEIPTS_BUCKET_NAME
        self.endpoint_url = settings.RECEIPTS_ENDPOINT_URL.rstrip("/")
        self.region = settings.RECEIPTS_REGION_NAME
        self.access_key = settings.RECEIPTS_ACCESS_KEY
        self.secret_key = settings.RECEIPTS_SECRET_KEY

    @staticmethod
    def build_key(user_id: int, payment_id: int, filename: str, content_type: str,
                  now: Optional[datetime] = None) -> str:
        """receipts/<user_id>/<payment_id>_<timestamp>.<ext>; the user folder scopes bucket policies."""
        now = now or utcnow()
        ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
        if not ext:
            ext = _EXTENSIONS.get(content_type) or (mimetypes.guess_extension(content_type) or "").lstrip(".")
        return f"receipts/{user_id}/{payment_id}_{int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)}.{ext}"

    def get_url(self, key: str) -> str:
        return f"{self.endpoint_url}/{self.bucket}/{urllib.parse.quote(key)}"

    def upload(self, data: bytes, key: str, content_type: str, filename: str) -> ReceiptReference:
        """Upload a receipt and return its reference."""
        validate_receipt(content_type, len(data))

        host = urllib.parse.urlparse(self.endpoint_url).netloc
        canonical_uri = f"/{self.bucket}/{urllib.parse.quote(key)}"
        now = utcnow()
        amz_date = now.strftime('%Y%m%dT%H%M%SZ')
        date_stamp = now.strftime('%Y%m%d')
        payload_hash = hashlib.sha256(data).hexdigest()
        headers = self._create_auth_headers(
            'PUT', host, canonical_uri, payload_hash, content_type, amz_date, date_stamp, len(data)
        )
        url = f"{self.endpoint_url}{canonical_uri}"
        try:
            response = requests.put(url, data=data, headers=headers, timeout=30)
        except requests.RequestException as e:
            logger.error(f"Receipt upload error for {key}: {str(e)}")
            raise TransientStoreError("Receipt storage is unavailable, try again later")
        if response.status_code not in (200, 201):
            logger.error(f"Receipt upload failed: {response.status_code} - {response.text}")
            raise TransientStoreError(f"Receipt upload failed: {response.status_code}")

        logger.info(f"Uploaded receipt {key} ({len(data)} bytes)")
        return ReceiptReference(key=key, url=self.get_url(key), filename=filename)

    def delete(self, key: str) -> bool:
        """Remove an uploaded receipt; failures are logged, not raised."""
        host = urllib.parse.urlparse(self.endpoint_url).netloc
        canonical_uri = f"/{self.bucket}/{urllib.parse.quote(key)}"
        now = utcnow()
        headers = self._create_auth_headers(
            'DELETE', host, canonical_uri, hashlib.sha256(b'').hexdigest(), None,
            now.strftime('%Y%m%dT%H%M%SZ'), now.strftime('%Y%m%d'), 0
        )
        try:
            response = requests.delete(f"{self.endpoint_url}{canonical_uri}", headers=headers, timeout=30)
        except requests.RequestException as e:
            logger.error(f"Receipt delete error for {key}: {str(e)}")
            return False
        if response.status_code not in (200, 204):
            logger.error(f"Receipt delete failed for {key}: {response.status_code} - {response.text}")
            return False
        logger.info(f"Deleted receipt {key}")
        return True

    def _create_auth_headers(self, method: str, host: str, canonical_uri: str, payload_hash: str,
                             content_type: Optional[str], amz_date: str, date_stamp: str, size: int) -> dict:
        """Create AWS Signature V4 headers."""
        def sign(key, msg):
            return hmac.new(key, msg.encode('utf-8'), hashlib.sha256).digest()

        service = 's3'
        canonical_headers = f"host:{host}\nx-amz-content-sha256:{payload_hash}\nx-amz-date:{amz_date}\n"
        signed_headers = 'host;x-amz-content-sha256;x-amz-date'
        canonical_request = f'{method}\n{canonical_uri}\n\n{canonical_headers}\n{signed_headers}\n{payload_hash}'
        algorithm = 'AWS4-HMAC-SHA256'
        credential_scope = f'{date_stamp}/{self.region}/{service}/aws4_request'
        string_to_sign = f'{algorithm}\n{amz_date}\n{credential_scope}\n{hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()}'

        k_date = sign(('AWS4' + self.secret_key).encode('utf-8'), date_stamp)
        k_region = sign(k_date, self.region)
        k_service = sign(k_region, service)
        k_signing = sign(k_service, 'aws4_request')
        signature = hmac.new(k_signing, string_to_sign.encode('utf-8'), hashlib.sha256).hexdigest()

        headers = {
            'Authorization': f'{algorithm} Credential={self.access_key}/{credential_scope}, '
                             f'SignedHeaders={signed_headers}, Signature={signature}',
            'x-amz-content-sha256': payload_hash,
            'x-amz-date': amz_date,
            'Content-Length': str(size),
        }
        if content_type:
            headers['Content-Type'] = content_type
        return headers


def get_receipt_storage() -> ReceiptStorage:
    """FastAPI dependency."""
    return ReceiptStorage()
