import aiohttp
import logging
from typing import List, Optional, Sequence

from .. import config
from ..schemas import Proof, WinnerInfo
from ..utils.timestamps import parse_timestamp

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for announcing winners once a proof exists"""

    @staticmethod
    def resolve_winners(proof: Proof, tickets: Sequence) -> List[WinnerInfo]:
        """Map winning indexes back to tickets, keeping draw order"""
        by_index = {t.index: t for t in tickets}
        winners = []
        for position, ticket_index in enumerate(proof.winner_ticket_indexes, start=1):
            ticket = by_index.get(ticket_index)
            if ticket is None:
                logger.warning(f"Raffle {proof.raffle_id}: winning index {ticket_index} has no ticket")
                continue
            winners.append(WinnerInfo(
                position=position,
                ticket_id=ticket.id,
                ticket_index=ticket.index,
                user_id=ticket.user_id,
            ))
        return winners

    @staticmethod
    async def notify_winners(raffle_title: str, proof: Proof, winners: List[WinnerInfo],
                             webhook_url: Optional[str] = None) -> bool:
        """POST the announcement to the configured webhook. Failures are logged only."""
        url = webhook_url or config.WINNER_WEBHOOK_URL
        if not url:
            logger.info(f"No winner webhook configured, skipping announcement for raffle {proof.raffle_id}")
            return False

        payload = {
            "raffleId": proof.raffle_id,
            "title": raffle_title,
            "closedAt": proof.closed_at,
            "closedAtDisplay": config.to_display_time(parse_timestamp(proof.closed_at)),
            "seedCommitHash": proof.seed_commit_hash,
            "winners": [w.model_dump(by_alias=True) for w in winners],
        }

        try:
            timeout = aiohttp.ClientTimeout(total=10)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=payload) as response:
                    if response.status >= 400:
                        logger.error(f"Winner webhook returned {response.status} for raffle {proof.raffle_id}")
                        return False
        except Exception as e:
            logger.error(f"Error sending winner announcement for raffle {proof.raffle_id}: {e}")
            return False

        logger.info(f"Announced {len(winners)} winners for raffle {proof.raffle_id}")
        return True
