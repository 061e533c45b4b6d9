from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import List

from ..database import get_db
from ..models import Raffle, Ticket, RAFFLE_OPEN
from ..schemas import (
    Raffle as RaffleSchema, ProofResponse, Ticket as TicketSchema, VerificationResult, VerifyRequest,
)
from ..services.provably_fair import ProvablyFairService
from ..services.raffle import RaffleService

router = APIRouter()


async def raffle_or_404(raffle_id: str, db: AsyncSession) -> Raffle:
    raffle = await RaffleService.get_raffle(db, raffle_id)
    if not raffle:
        raise HTTPException(status_code=404, detail="Raffle not found")
    return raffle


async def raffle_summary(raffle: Raffle, db: AsyncSession) -> RaffleSchema:
    count_result = await db.execute(
        select(func.count(Ticket.id)).where(Ticket.raffle_id == raffle.id)
    )
    summary = RaffleSchema.model_validate(raffle)
    return summary.model_copy(update={
        "ticket_count": count_result.scalar(),
        "has_proof": raffle.proof is not None,
    })


@router.post("/verify", response_model=VerificationResult)
async def verify_proof(request: VerifyRequest):
    """Stateless verifier: checks a submitted proof against a submitted ticket export"""
    return ProvablyFairService.verify(request.proof, request.tickets, request.expected_closed_at)


@router.get("/{raffle_id}", response_model=RaffleSchema)
async def get_raffle(raffle_id: str, db: AsyncSession = Depends(get_db)):
    """Raffle details with the published seed commitment - PUBLIC ENDPOINT"""
    raffle = await raffle_or_404(raffle_id, db)
    return await raffle_summary(raffle, db)


@router.get("/{raffle_id}/tickets", response_model=List[TicketSchema])
async def export_tickets(raffle_id: str, db: AsyncSession = Depends(get_db)):
    """Ticket export for auditors, available once sales are closed"""
    raffle = await raffle_or_404(raffle_id, db)
    if raffle.status == RAFFLE_OPEN:
        raise HTTPException(status_code=400, detail="Raffle is still open")
    return await RaffleService.get_tickets(db, raffle_id)


@router.get("/{raffle_id}/proof", response_model=ProofResponse)
async def get_proof(raffle_id: str, db: AsyncSession = Depends(get_db)):
    raffle = await raffle_or_404(raffle_id, db)
    verified = await RaffleService.get_verified_proof(db, raffle)
    if verified is None:
        raise HTTPException(status_code=404, detail="Proof not available")

    proof, verification, winners = verified
    return ProofResponse(proof=proof, verification=verification, winners=winners)
