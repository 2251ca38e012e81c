import hashlib
import hmac
import logging
from cryptography.fernet import Fernet, InvalidToken
from collab.core.config import settings

logger = logging.getLogger(__name__)

# Webhook signing secrets are stored encrypted with ENCRYPTION_KEY
_cipher = Fernet(settings.encryption_key)

def encrypt_data(data: str) -> str:
    """Encrypt sensitive string data."""
    if not data:
        return data
    try:
        return _cipher.encrypt(data.encode()).decode()
    except Exception as e:
        logger.error(f"Encryption failed: {e}")
        raise ValueError(f"Encryption failed - refusing to store plaintext: {e}") from e

def decrypt_data(encrypted_data: str) -> str:
    """Decrypt sensitive string data."""
    if not encrypted_data:
        return encrypted_data
    try:
        return _cipher.decrypt(encrypted_data.encode()).decode()
    except InvalidToken as e:
        logger.error("Decryption failed: token invalid for current ENCRYPTION_KEY")
        raise ValueError("Stored secret cannot be decrypted") from e

def sign_payload(payload: str, secret: str, timestamp: int) -> str:
    """HMAC-SHA256 over '<timestamp>.<payload>', hex encoded."""
    message = f"{timestamp}.{payload}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()

def signature_header(signature: str, timestamp: int) -> str:
    return f"t={timestamp},v1={signature}"
