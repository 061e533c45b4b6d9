"""
Standalone proof checker for auditors.

    fairdraw-verify proof.json tickets.json [--closed-at 2026-02-13T12:00:00.000Z]

``proof.json`` is either the bare proof or the ``GET /api/raffles/{id}/proof``
response; ``tickets.json`` is the ticket export. Without ``--closed-at`` the
closing time published in the proof is used, which still checks the
commitment and the selection.
"""
import argparse
import json
import sys
from typing import List, Optional

from pydantic import TypeAdapter

from .schemas import Ticket
from .services.provably_fair import ProvablyFairService

_tickets_adapter = TypeAdapter(List[Ticket])


def load_json(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="fairdraw-verify", description="Verify a published raffle proof")
    parser.add_argument("proof", help="proof JSON file")
    parser.add_argument("tickets", help="ticket export JSON file")
    parser.add_argument("--closed-at", help="closing time announced by the operator (ISO-8601)")
    args = parser.parse_args(argv)

    try:
        proof = load_json(args.proof)
    except (OSError, ValueError) as e:
        print(f"Cannot read proof file {args.proof}: {e}", file=sys.stderr)
        return 2
    if isinstance(proof, dict) and "proof" in proof:
        proof = proof["proof"]

    try:
        tickets = _tickets_adapter.validate_python(load_json(args.tickets))
    except (OSError, ValueError) as e:
        # ValidationError и JSONDecodeError наследуют ValueError
        print(f"Invalid ticket export: {e}", file=sys.stderr)
        return 2

    expected_closed_at = args.closed_at
    if expected_closed_at is None:
        expected_closed_at = proof.get("closedAt", proof.get("closed_at", "")) if isinstance(proof, dict) else ""

    result = ProvablyFairService.verify(proof, tickets, expected_closed_at)
    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0 if result.valid else 1


if __name__ == "__main__":
    sys.exit(main())
