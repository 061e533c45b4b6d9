import hashlib
import hmac
import secrets
from typing import NamedTuple

# 32 bytes = 256 bits of entropy
SERVER_SEED_BYTES = 32


class SeedCommitment(NamedTuple):
    server_seed: str
    seed_commit_hash: str


def hash_seed(server_seed: str) -> str:
    """SHA-256 of the seed's UTF-8 bytes, lowercase hex"""
    return hashlib.sha256(server_seed.encode("utf-8")).hexdigest()


def matches_commitment(server_seed: str, seed_commit_hash: str) -> bool:
    return hmac.compare_digest(hash_seed(server_seed).encode("utf-8"), seed_commit_hash.encode("utf-8"))


def commit() -> SeedCommitment:
    """
    Generate a fresh server seed and its public commitment.
    Called once per raffle at open time. Only seed_commit_hash may leave
    the process before the raffle closes.
    """
    server_seed = secrets.token_hex(SERVER_SEED_BYTES)
    return SeedCommitment(server_seed=server_seed, seed_commit_hash=hash_seed(server_seed))
