# filevault/services/tokens.py
import base64
import secrets

from filevault.core.errors import UnavailableRandomnessError

TOKEN_BYTES = 16

def generate_token() -> str:
    """
    Draw 16 random bytes from the OS CSPRNG and return them URL-safe base64 encoded.

    Raises UnavailableRandomnessError if the random source cannot be read.
    """
    try:
        raw = secrets.token_bytes(TOKEN_BYTES)
    except (OSError, NotImplementedError) as e:
        raise UnavailableRandomnessError(f"Random source unavailable: {e}") from e
    return base64.urlsafe_b64encode(raw).decode("ascii")
