from passlib.context import CryptContext

from config import PBKDF2_ROUNDS

# Secrets are write-only: they are hashed on create and never read back,
# so the context only needs to produce hashes.
secret_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=PBKDF2_ROUNDS,
)


def hash_secret(secret: str) -> str:
    """Salted PBKDF2-SHA256 hash of a user's secret, as stored in ``secret_hash``."""
    return secret_context.hash(secret)
