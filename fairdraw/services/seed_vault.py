import hashlib
import os
import logging
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .. import config
from ..exceptions import SeedVaultError

logger = logging.getLogger(__name__)

NONCE_BYTES = 12


class SeedVault:
    """
    Keeps server seeds encrypted at rest (AES-256-GCM) between raffle open
    and close. The raffle id is bound as associated data so a sealed seed
    cannot be moved to another raffle.
    """

    def __init__(self, secret: Optional[str] = None):
        self._secret = secret

    def _key(self) -> bytes:
        secret = self._secret if self._secret is not None else config.SEED_ENCRYPTION_KEY
        if not secret:
            raise SeedVaultError("SEED_ENCRYPTION_KEY is not configured")
        return hashlib.sha256(secret.encode("utf-8")).digest()

    def seal(self, server_seed: str, raffle_id: str) -> str:
        nonce = os.urandom(NONCE_BYTES)
        ciphertext = AESGCM(self._key()).encrypt(nonce, server_seed.encode("utf-8"), raffle_id.encode("utf-8"))
        return f"{nonce.hex()}.{ciphertext.hex()}"

    def open(self, payload: str, raffle_id: str) -> str:
        try:
            nonce_hex, data_hex = payload.split(".")
            nonce = bytes.fromhex(nonce_hex)
            data = bytes.fromhex(data_hex)
        except ValueError:
            raise SeedVaultError("Invalid encrypted seed payload")

        if len(nonce) != NONCE_BYTES:
            raise SeedVaultError("Invalid encrypted seed payload")

        try:
            plain = AESGCM(self._key()).decrypt(nonce, data, raffle_id.encode("utf-8"))
        except InvalidTag:
            logger.error(f"Sealed seed for raffle {raffle_id} failed authentication")
            raise SeedVaultError(f"Sealed seed for raffle {raffle_id} failed authentication")
        return plain.decode("utf-8")


seed_vault = SeedVault()
