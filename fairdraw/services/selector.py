"""
Deterministic winner selection.

Everything here is a pure function of its arguments so that an auditor can
re-implement it from this description alone:

1. Seed material is the domain tag ``fairdraw/v1`` followed by raffle id,
   commit hash, server seed, external entropy and the canonical closing time,
   each written as ``<utf-8 byte length>:<utf-8 bytes>`` and joined by ``|``.
2. Tickets are ordered by ``index``, ties broken by ``id``.
3. Random values come from ``SHA-256(seed_material || uint64_be(counter))``
   for counter = 0, 1, 2, ... shared across the whole draw.
4. A value is accepted for a pool of ``n`` candidates only when it is below
   ``floor(2**256 / n) * n``; the chosen position is ``value % n``.
"""
import hashlib
from typing import Iterable, Iterator, List, Sequence

from ..exceptions import DuplicateTicketIndexError, TicketValidationError
from ..utils.timestamps import Timestamp, format_timestamp

SEED_DOMAIN_TAG = b"fairdraw/v1"
DIGEST_SPACE = 1 << 256


def _length_prefixed(value: str) -> bytes:
    raw = value.encode("utf-8")
    return str(len(raw)).encode("ascii") + b":" + raw


def canonical_seed_material(
    raffle_id: str,
    seed_commit_hash: str,
    server_seed: str,
    external_entropy: str,
    closed_at: Timestamp,
) -> bytes:
    fields = [raffle_id, seed_commit_hash, server_seed, external_entropy, format_timestamp(closed_at)]
    return b"|".join([SEED_DOMAIN_TAG] + [_length_prefixed(f) for f in fields])


def canonical_order(tickets: Iterable) -> List:
    """Sort tickets into their canonical enumeration and reject duplicate indexes"""
    ordered = sorted(tickets, key=lambda t: (t.index, str(t.id)))
    for previous, current in zip(ordered, ordered[1:]):
        if previous.index == current.index:
            raise DuplicateTicketIndexError(current.index)
    return ordered


def digest_stream(seed_material: bytes) -> Iterator[int]:
    counter = 0
    while True:
        digest = hashlib.sha256(seed_material + counter.to_bytes(8, "big")).digest()
        yield int.from_bytes(digest, "big")
        counter += 1


def uniform_below(stream: Iterator[int], n: int) -> int:
    """Draw an unbiased integer in [0, n) from the digest stream"""
    if n <= 0:
        raise ValueError("n must be > 0")
    limit = (DIGEST_SPACE // n) * n
    for value in stream:
        if value < limit:
            return value % n
    raise RuntimeError("digest stream exhausted")


def select(seed_material: bytes, tickets: Sequence, winner_count: int) -> List[int]:
    """
    Pick ``min(winner_count, len(tickets))`` distinct ticket indexes.

    The result is in draw order. When every ticket wins, the result is the
    canonical ascending order and no randomness is consumed.
    """
    if winner_count < 0:
        raise TicketValidationError(f"winner_count must be >= 0, got {winner_count}")

    candidates = canonical_order(tickets)
    if winner_count == 0 or not candidates:
        return []
    if winner_count >= len(candidates):
        return [t.index for t in candidates]

    stream = digest_stream(seed_material)
    winners = []
    while len(winners) < winner_count:
        position = uniform_below(stream, len(candidates))
        winners.append(candidates.pop(position).index)
    return winners
