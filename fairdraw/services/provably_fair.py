import logging
from typing import Mapping, Sequence, Union

from pydantic import ValidationError

from ..exceptions import CommitmentIntegrityError, EntropyValidationError, FairDrawError, TicketValidationError
from ..schemas import PROOF_ALGORITHM, PROOF_VERSION, FailureReason, Proof, VerificationResult
from ..utils.timestamps import Timestamp, format_timestamp
from .commitment import matches_commitment
from .selector import canonical_seed_material, select

logger = logging.getLogger(__name__)

MIN_ENTROPY_LENGTH = 16
MAX_ENTROPY_LENGTH = 256


class ProvablyFairService:
    """Генерация и проверка доказательств честности розыгрыша"""

    @staticmethod
    def validate_tickets(raffle_id: str, tickets: Sequence) -> None:
        for ticket in tickets:
            if ticket.raffle_id != raffle_id:
                raise TicketValidationError(
                    f"Ticket {ticket.id} belongs to raffle {ticket.raffle_id}, not {raffle_id}"
                )
            if isinstance(ticket.index, bool) or not isinstance(ticket.index, int) or ticket.index < 1:
                raise TicketValidationError(f"Ticket {ticket.id} has invalid index {ticket.index!r}")

    @staticmethod
    def generate(
        raffle_id: str,
        seed_commit_hash: str,
        server_seed: str,
        external_entropy: str,
        closed_at: Timestamp,
        tickets: Sequence,
        winner_count: int,
    ) -> Proof:
        """
        Reveal the seed and derive winners for a closed raffle.
        Raises CommitmentIntegrityError, EntropyValidationError or
        TicketValidationError; nothing is produced on failure.
        """
        if not matches_commitment(server_seed, seed_commit_hash):
            logger.error(f"Commitment integrity violated for raffle {raffle_id}")
            raise CommitmentIntegrityError(raffle_id)

        if not MIN_ENTROPY_LENGTH <= len(external_entropy) <= MAX_ENTROPY_LENGTH:
            raise EntropyValidationError(
                f"External entropy must be {MIN_ENTROPY_LENGTH}-{MAX_ENTROPY_LENGTH} characters"
            )

        ProvablyFairService.validate_tickets(raffle_id, tickets)

        if winner_count > len(tickets):
            logger.info(
                f"Raffle {raffle_id}: winner count {winner_count} exceeds "
                f"ticket count {len(tickets)}, every ticket wins"
            )

        closed_at_text = format_timestamp(closed_at)
        seed_material = canonical_seed_material(
            raffle_id, seed_commit_hash, server_seed, external_entropy, closed_at_text
        )
        winners = select(seed_material, tickets, winner_count)

        proof = Proof(
            version=PROOF_VERSION,
            algorithm=PROOF_ALGORITHM,
            raffle_id=raffle_id,
            seed_commit_hash=seed_commit_hash,
            server_seed=server_seed,
            external_entropy=external_entropy,
            closed_at=closed_at_text,
            winner_ticket_indexes=tuple(winners),
            winner_count=winner_count,
            ticket_count=len(tickets),
        )
        logger.info(f"Raffle {raffle_id}: proof generated, {len(winners)} winners from {len(tickets)} tickets")
        return proof

    @staticmethod
    def verify(
        proof: Union[Proof, Mapping],
        tickets: Sequence,
        expected_closed_at: Timestamp,
    ) -> VerificationResult:
        """
        Re-derive the draw from the published proof and a ticket export.
        Never raises: every failure is reported as a VerificationResult.
        """
        if not isinstance(proof, Proof):
            try:
                proof = Proof.model_validate(proof)
            except (ValidationError, TypeError, ValueError):
                return VerificationResult(valid=False, reason=FailureReason.MALFORMED_PROOF)

        if proof.version != PROOF_VERSION or proof.algorithm != PROOF_ALGORITHM:
            return VerificationResult(valid=False, reason=FailureReason.MALFORMED_PROOF)

        # 1. Время закрытия (в доказательстве только каноническая форма)
        try:
            closed_at_matches = (
                proof.closed_at == format_timestamp(proof.closed_at)
                and proof.closed_at == format_timestamp(expected_closed_at)
            )
        except (TypeError, ValueError):
            closed_at_matches = False
        if not closed_at_matches:
            return VerificationResult(valid=False, reason=FailureReason.CLOSED_AT_MISMATCH)

        # 2. Коммит
        if not matches_commitment(proof.server_seed, proof.seed_commit_hash):
            return VerificationResult(valid=False, reason=FailureReason.HASH_MISMATCH)

        # 3. Повторный выбор победителей
        if proof.ticket_count != len(tickets):
            return VerificationResult(valid=False, reason=FailureReason.SELECTION_MISMATCH)
        try:
            ProvablyFairService.validate_tickets(proof.raffle_id, tickets)
            seed_material = canonical_seed_material(
                proof.raffle_id,
                proof.seed_commit_hash,
                proof.server_seed,
                proof.external_entropy,
                proof.closed_at,
            )
            recomputed = select(seed_material, tickets, proof.winner_count)
        except (FairDrawError, TypeError, ValueError, AttributeError):
            return VerificationResult(valid=False, reason=FailureReason.SELECTION_MISMATCH)

        if tuple(recomputed) != tuple(proof.winner_ticket_indexes):
            return VerificationResult(valid=False, reason=FailureReason.SELECTION_MISMATCH)

        return VerificationResult(valid=True)
