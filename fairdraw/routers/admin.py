from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from ..database import get_db
from ..exceptions import (
    BeaconError, BeaconNotReadyError, CommitmentIntegrityError, EntropyValidationError, RaffleStateError,
    SeedVaultError, TicketValidationError,
)
from ..schemas import DrawRequest, Raffle as RaffleSchema, RaffleCreate, TicketImport
from ..services.raffle import RaffleService
from ..utils.auth import get_current_admin
from .raffles import raffle_or_404, raffle_summary

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/raffles", response_model=RaffleSchema)
async def create_raffle(
    raffle_data: RaffleCreate,
    current_admin: str = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Open a raffle; the commit hash is public from this point"""
    try:
        raffle = await RaffleService.open_raffle(
            db, raffle_data.title, raffle_data.winner_count, raffle_data.closes_at
        )
    except SeedVaultError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return await raffle_summary(raffle, db)


@router.post("/raffles/{raffle_id}/tickets")
async def import_tickets(
    raffle_id: str,
    tickets: List[TicketImport],
    current_admin: str = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    raffle = await raffle_or_404(raffle_id, db)
    try:
        imported = await RaffleService.import_tickets(db, raffle, tickets)
    except RaffleStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TicketValidationError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {"status": "success", "imported": imported}


@router.post("/raffles/{raffle_id}/close", response_model=RaffleSchema)
async def close_raffle(
    raffle_id: str,
    current_admin: str = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    raffle = await raffle_or_404(raffle_id, db)
    try:
        raffle = await RaffleService.close_raffle(db, raffle)
    except RaffleStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await raffle_summary(raffle, db)


@router.post("/raffles/{raffle_id}/draw")
async def draw_raffle(
    raffle_id: str,
    draw_data: DrawRequest,
    current_admin: str = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Reveal the server seed and draw winners for a closed raffle"""
    raffle = await raffle_or_404(raffle_id, db)
    try:
        proof, winners = await RaffleService.draw_raffle(
            db, raffle, draw_data.external_entropy, draw_data.winner_count
        )
    except RaffleStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CommitmentIntegrityError as e:
        logger.error(f"Refusing to draw raffle {raffle_id}: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except TicketValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except EntropyValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except BeaconNotReadyError as e:
        raise HTTPException(status_code=425, detail=str(e))
    except (BeaconError, SeedVaultError) as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {
        "raffleId": raffle_id,
        "status": "drawn",
        "proof": proof.model_dump(mode="json", by_alias=True),
        "winners": [w.model_dump(by_alias=True) for w in winners],
    }
