import random
from collections import Counter

import pytest

from fairdraw.exceptions import DuplicateTicketIndexError, TicketValidationError
from fairdraw.services.selector import (
    DIGEST_SPACE, canonical_order, canonical_seed_material, digest_stream, select, uniform_below,
)
from conftest import CLOSED_AT, EXTERNAL_ENTROPY, SERVER_SEED, make_tickets, sha256_hex

BASE_FIELDS = ["raf_1", sha256_hex(SERVER_SEED), SERVER_SEED, EXTERNAL_ENTROPY, CLOSED_AT]


def material(*fields):
    return canonical_seed_material(*fields)


def test_seed_material_changes_with_every_field():
    base = material(*BASE_FIELDS)
    replacements = ["raf_2", sha256_hex("other"), SERVER_SEED + "!", EXTERNAL_ENTROPY + "0", "2026-02-13T12:00:00.001Z"]
    for position, replacement in enumerate(replacements):
        fields = list(BASE_FIELDS)
        fields[position] = replacement
        assert material(*fields) != base


def test_seed_material_is_unambiguous_across_field_boundaries():
    a = material("raf|1", "h", "seed", "entropy-entropy-1", CLOSED_AT)
    b = material("raf", "1|h", "seed", "entropy-entropy-1", CLOSED_AT)
    assert a != b
    c = material("ab", "c", "seed", "entropy-entropy-1", CLOSED_AT)
    d = material("a", "bc", "seed", "entropy-entropy-1", CLOSED_AT)
    assert c != d


def test_seed_material_canonicalizes_closed_at():
    as_text = material(*BASE_FIELDS[:4], "2026-02-13T12:00:00.000Z")
    as_offset = material(*BASE_FIELDS[:4], "2026-02-13T15:00:00+03:00")
    assert as_text == as_offset


def test_canonical_order_sorts_by_index_then_id():
    tickets = make_tickets(5)
    shuffled = list(reversed(tickets))
    assert [t.index for t in canonical_order(shuffled)] == [1, 2, 3, 4, 5]


def test_canonical_order_rejects_duplicate_index():
    tickets = make_tickets(3) + [make_tickets(1, start=2)[0].model_copy(update={"id": "dup"})]
    with pytest.raises(DuplicateTicketIndexError) as exc:
        canonical_order(tickets)
    assert exc.value.index == 2


def test_select_is_deterministic():
    seed = material(*BASE_FIELDS)
    tickets = make_tickets(50)
    assert select(seed, tickets, 3) == select(seed, tickets, 3)


def test_select_ignores_input_order():
    seed = material(*BASE_FIELDS)
    tickets = make_tickets(30)
    shuffled = list(tickets)
    random.Random(7).shuffle(shuffled)
    assert select(seed, tickets, 5) == select(seed, shuffled, 5)


def test_select_cardinality_and_membership():
    seed = material(*BASE_FIELDS)
    tickets = make_tickets(40, start=100)
    winners = select(seed, tickets, 10)
    assert len(winners) == 10
    assert len(set(winners)) == 10
    assert set(winners) <= {t.index for t in tickets}


def test_select_handles_gaps_in_indexes():
    seed = material(*BASE_FIELDS)
    tickets = [t for t in make_tickets(20) if t.index % 3 != 0]
    winners = select(seed, tickets, 4)
    assert all(w % 3 != 0 for w in winners)


def test_select_degenerate_cases():
    seed = material(*BASE_FIELDS)
    tickets = make_tickets(4)
    assert select(seed, [], 3) == []
    assert select(seed, tickets, 0) == []
    assert select(seed, list(reversed(tickets)), 4) == [1, 2, 3, 4]
    assert select(seed, tickets, 10) == [1, 2, 3, 4]


def test_select_rejects_negative_winner_count():
    with pytest.raises(TicketValidationError):
        select(material(*BASE_FIELDS), make_tickets(3), -1)


def test_select_rejects_duplicate_indexes():
    tickets = make_tickets(3) + make_tickets(1, start=3)
    with pytest.raises(DuplicateTicketIndexError):
        select(material(*BASE_FIELDS), tickets, 1)


def test_digest_stream_follows_counter_construction():
    import hashlib

    seed = b"seed-material"
    stream = digest_stream(seed)
    for counter in range(3):
        expected = hashlib.sha256(seed + counter.to_bytes(8, "big")).digest()
        assert next(stream) == int.from_bytes(expected, "big")


def test_uniform_below_rejects_biased_tail():
    # 2**256 % 3 == 1, so the single value 2**256 - 1 lies in the biased tail
    stream = iter([DIGEST_SPACE - 1, 5])
    assert uniform_below(stream, 3) == 2


def test_uniform_below_accepts_last_unbiased_value():
    n = 3
    limit = (DIGEST_SPACE // n) * n
    assert uniform_below(iter([limit - 1]), n) == (limit - 1) % n


def test_select_positions_are_uniform():
    pool = make_tickets(5)
    trials = 5000
    counts = Counter()
    for trial in range(trials):
        seed = material("raf_stat", "h" * 64, f"seed-{trial}", EXTERNAL_ENTROPY, CLOSED_AT)
        counts[select(seed, pool, 1)[0]] += 1

    expected = trials / len(pool)
    chi_square = sum((counts[t.index] - expected) ** 2 / expected for t in pool)
    # 4 degrees of freedom; 23.51 is the 0.9999 quantile
    assert chi_square < 23.51
