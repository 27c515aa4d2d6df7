"""MFA primitives: TOTP secrets and codes, QR rendering, secret encryption."""

import base64
import hmac
import re
import secrets
import string
from datetime import datetime
from io import BytesIO

import pyotp
import qrcode
from cryptography.fernet import Fernet

from stride.config import settings
from stride.services.shared.clock import utcnow

TOTP_CODE_PATTERN = re.compile(r"^\d{6}$")
BACKUP_CODE_ALPHABET = string.ascii_uppercase + string.digits


def _get_fernet() -> Fernet:
    if not settings.mfa_encryption_key:
        raise ValueError("MFA encryption key not configured")
    return Fernet(settings.mfa_encryption_key.encode())


class MfaService:
    """Stateless helpers used by the MFA engine and backup code vault."""

    @staticmethod
    def generate_totp_secret() -> str:
        """160-bit random secret, base32 encoded."""
        return pyotp.random_base32()

    @staticmethod
    def get_totp_uri(secret: str, email: str) -> str:
        """otpauth:// provisioning URI shown to authenticator apps."""
        totp = pyotp.TOTP(secret)
        return totp.provisioning_uri(name=email, issuer_name=settings.mfa_issuer_name)

    @staticmethod
    def generate_qr_code_base64(uri: str) -> str:
        """Render uri as a base64 PNG QR code."""
        qr = qrcode.make(uri)
        buffer = BytesIO()
        qr.save(buffer, format="PNG")
        return base64.b64encode(buffer.getvalue()).decode()

    @staticmethod
    def is_totp_code(code: str | None) -> bool:
        return bool(code) and TOTP_CODE_PATTERN.match(code) is not None

    @staticmethod
    def match_totp_step(secret: str, code: str, for_time: datetime | None = None) -> int | None:
        """Return the time-step a code belongs to, or None.

        Accepts the current 30-second step and one step of drift either way.
        """
        if not MfaService.is_totp_code(code):
            return None
        totp = pyotp.TOTP(secret)
        current = totp.timecode(for_time or utcnow())
        for step in (current - 1, current, current + 1):
            if hmac.compare_digest(totp.generate_otp(step), code):
                return step
        return None

    @staticmethod
    def verify_totp(secret: str, code: str) -> bool:
        """True if code is valid now, give or take one step."""
        return MfaService.match_totp_step(secret, code) is not None

    @staticmethod
    def encrypt_secret(secret: str) -> str:
        """Fernet-encrypt a TOTP secret before it is stored on a factor row."""
        return _get_fernet().encrypt(secret.encode()).decode()

    @staticmethod
    def decrypt_secret(encrypted: str) -> str:
        """Inverse of encrypt_secret. Raises InvalidToken if the key changed."""
        return _get_fernet().decrypt(encrypted.encode()).decode()

    @staticmethod
    def generate_backup_codes(count: int = 10, length: int = 8) -> list[str]:
        """Generate uppercase alphanumeric backup codes, uniformly sampled."""
        return [
            "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(length))
            for _ in range(count)
        ]
