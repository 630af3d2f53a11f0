import json

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app


class CredentialError(Exception):
    pass


def _cipher() -> Fernet:
    key = current_app.config.get("CALENDAR_CREDENTIALS_KEY")
    if not key:
        raise CredentialError("CALENDAR_CREDENTIALS_KEY is not configured")
    return Fernet(key.encode() if isinstance(key, str) else key)


def encrypt_credentials(bundle: dict) -> str:
    return _cipher().encrypt(json.dumps(bundle).encode()).decode()


def decrypt_credentials(token: str) -> dict:
    try:
        raw = _cipher().decrypt(token.encode())
    except InvalidToken as exc:
        raise CredentialError("Stored calendar credentials cannot be decrypted") from exc
    return json.loads(raw)
