from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime
from typing import List, Optional, Sequence, Tuple
import logging
import uuid

from ..config import utc_now
from ..database import async_session_maker
from ..exceptions import (
    BeaconError, BeaconNotReadyError, CommitmentIntegrityError, DuplicateTicketIndexError, FairDrawError,
    RaffleStateError, TicketValidationError,
)
from ..models import Raffle, Ticket, RAFFLE_OPEN, RAFFLE_CLOSED, RAFFLE_DRAWN, RAFFLE_FAILED
from ..schemas import Proof, Ticket as TicketSchema, TicketImport, VerificationResult, WinnerInfo
from ..utils.timestamps import format_timestamp, parse_timestamp
from .beacon import beacon_client
from .commitment import commit
from .notifications import NotificationService
from .provably_fair import ProvablyFairService
from .seed_vault import seed_vault

logger = logging.getLogger(__name__)


class RaffleService:
    @staticmethod
    async def get_raffle(db: AsyncSession, raffle_id: str) -> Optional[Raffle]:
        result = await db.execute(select(Raffle).where(Raffle.id == raffle_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_tickets(db: AsyncSession, raffle_id: str) -> List[TicketSchema]:
        """Finalized ticket list, in canonical order"""
        result = await db.execute(
            select(Ticket).where(Ticket.raffle_id == raffle_id).order_by(Ticket.index.asc(), Ticket.id.asc())
        )
        return [TicketSchema.model_validate(t) for t in result.scalars().all()]

    @staticmethod
    async def open_raffle(db: AsyncSession, title: str, winner_count: int,
                          closes_at: Optional[datetime] = None) -> Raffle:
        """Create a raffle and commit to its server seed"""
        raffle_id = f"raf_{uuid.uuid4().hex[:12]}"
        commitment = commit()
        raffle = Raffle(
            id=raffle_id,
            title=title,
            status=RAFFLE_OPEN,
            winner_count=winner_count,
            seed_commit_hash=commitment.seed_commit_hash,
            encrypted_server_seed=seed_vault.seal(commitment.server_seed, raffle_id),
            opened_at=utc_now(),
            closes_at=parse_timestamp(closes_at) if closes_at else None,
        )
        db.add(raffle)
        await db.commit()
        await db.refresh(raffle)

        logger.info(f"Opened raffle {raffle_id} with commitment {commitment.seed_commit_hash}")
        return raffle

    @staticmethod
    async def import_tickets(db: AsyncSession, raffle: Raffle, tickets: Sequence[TicketImport]) -> int:
        """Record tickets sold for an open raffle"""
        if raffle.status != RAFFLE_OPEN:
            raise RaffleStateError(f"Raffle {raffle.id} is not open")

        seen = set()
        for t in tickets:
            if t.index in seen:
                raise DuplicateTicketIndexError(t.index)
            seen.add(t.index)

        existing = await db.execute(
            select(Ticket.index).where(Ticket.raffle_id == raffle.id, Ticket.index.in_(sorted(seen)))
        )
        clash = existing.scalars().first()
        if clash is not None:
            raise DuplicateTicketIndexError(clash)

        for t in tickets:
            db.add(Ticket(
                id=t.id or f"tkt_{uuid.uuid4().hex[:16]}",
                raffle_id=raffle.id,
                user_id=t.user_id,
                index=t.index,
                price_paid=t.price_paid,
                client_seed=t.client_seed,
                created_at=t.created_at or utc_now(),
            ))
        await db.commit()
        return len(tickets)

    @staticmethod
    async def close_raffle(db: AsyncSession, raffle: Raffle, closed_at: Optional[datetime] = None) -> Raffle:
        if raffle.status != RAFFLE_OPEN:
            raise RaffleStateError(f"Raffle {raffle.id} is not open")

        raffle.closed_at = format_timestamp(closed_at or utc_now())
        raffle.status = RAFFLE_CLOSED
        await db.commit()
        logger.info(f"Closed raffle {raffle.id} at {raffle.closed_at}")
        return raffle

    @staticmethod
    async def draw_raffle(db: AsyncSession, raffle: Raffle, external_entropy: Optional[str] = None,
                          winner_count: Optional[int] = None) -> Tuple[Proof, List[WinnerInfo]]:
        """
        Reveal the seed, pull entropy and tickets, and persist the proof.
        Nothing is written unless the proof was generated successfully.
        """
        if raffle.status != RAFFLE_CLOSED or not raffle.closed_at:
            raise RaffleStateError(f"Raffle {raffle.id} is not closed")

        tickets = await RaffleService.get_tickets(db, raffle.id)
        if external_entropy is None:
            external_entropy = await beacon_client.entropy_after(raffle.closed_at)

        server_seed = seed_vault.open(raffle.encrypted_server_seed, raffle.id)
        proof = ProvablyFairService.generate(
            raffle_id=raffle.id,
            seed_commit_hash=raffle.seed_commit_hash,
            server_seed=server_seed,
            external_entropy=external_entropy,
            closed_at=raffle.closed_at,
            tickets=tickets,
            winner_count=raffle.winner_count if winner_count is None else winner_count,
        )

        raffle.proof = proof.model_dump(mode="json", by_alias=True)
        raffle.status = RAFFLE_DRAWN
        raffle.drawn_at = utc_now()
        await db.commit()

        winners = NotificationService.resolve_winners(proof, tickets)
        await NotificationService.notify_winners(raffle.title, proof, winners)
        return proof, winners

    @staticmethod
    async def get_verified_proof(db: AsyncSession, raffle: Raffle) -> Optional[Tuple[Proof, VerificationResult, List[WinnerInfo]]]:
        """Stored proof re-verified against the stored tickets"""
        if not raffle.proof or not raffle.closed_at:
            return None

        proof = Proof.model_validate(raffle.proof)
        tickets = await RaffleService.get_tickets(db, raffle.id)
        verification = ProvablyFairService.verify(proof, tickets, raffle.closed_at)
        winners = NotificationService.resolve_winners(proof, tickets)
        return proof, verification, winners

    @staticmethod
    async def close_and_draw_due_raffles():
        """Close raffles past their scheduled close time and draw closed ones"""
        async with async_session_maker() as db:
            now = utc_now()
            result = await db.execute(
                select(Raffle).where(
                    Raffle.status == RAFFLE_OPEN,
                    Raffle.closes_at.is_not(None),
                    Raffle.closes_at <= now
                )
            )
            for raffle in result.scalars().all():
                await RaffleService.close_raffle(db, raffle, now)

            result = await db.execute(select(Raffle.id).where(Raffle.status == RAFFLE_CLOSED))
            for raffle_id in result.scalars().all():
                raffle = await RaffleService.get_raffle(db, raffle_id)
                try:
                    await RaffleService.draw_raffle(db, raffle)
                except BeaconNotReadyError as e:
                    logger.info(f"Raffle {raffle_id}: {e}, will retry")
                except BeaconError as e:
                    logger.warning(f"Raffle {raffle_id}: {e}, will retry")
                except (CommitmentIntegrityError, TicketValidationError) as e:
                    # Данные розыгрыша испорчены: повтор даст тот же результат
                    await db.rollback()
                    logger.error(f"Draw failed for raffle {raffle_id}: {e}")
                    raffle = await RaffleService.get_raffle(db, raffle_id)
                    raffle.status = RAFFLE_FAILED
                    await db.commit()
                except FairDrawError as e:
                    # Ключ хранилища, энтропия: чинится оператором, розыгрыш остается закрытым
                    await db.rollback()
                    logger.error(f"Draw for raffle {raffle_id} deferred: {e}")
