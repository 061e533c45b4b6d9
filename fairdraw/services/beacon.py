import aiohttp
import asyncio
import logging
import re
from typing import Dict, Optional

from .. import config
from ..exceptions import BeaconError, BeaconNotReadyError
from ..utils.timestamps import Timestamp, parse_timestamp

logger = logging.getLogger(__name__)

RANDOMNESS_RE = re.compile(r"^[0-9a-f]{64}$")


def round_after(closed_at: Timestamp, genesis_time: int, period: int) -> int:
    """
    First drand round published strictly after closed_at.
    Round r is published at genesis_time + (r - 1) * period.
    """
    closed = parse_timestamp(closed_at).timestamp()
    if closed < genesis_time:
        return 1
    return int((closed - genesis_time) // period) + 2


def format_entropy(round_number: int, randomness: str) -> str:
    return f"drand-round-{round_number}:{randomness}"


class BeaconClient:
    """Клиент публичного маяка случайности drand"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or config.BEACON_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or config.BEACON_TIMEOUT_SECONDS)
        self._info: Optional[Dict] = None

    async def _get_json(self, path: str) -> Dict:
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url) as response:
                    if response.status in (404, 425):
                        return {"_status": response.status}
                    if response.status != 200:
                        raise BeaconError(f"Beacon returned HTTP {response.status} for {path}")
                    return await response.json()
        except aiohttp.ClientError as e:
            raise BeaconError(f"Beacon request failed for {path}: {e}") from e
        except asyncio.TimeoutError as e:
            raise BeaconError(f"Beacon request timed out for {path}") from e

    async def chain_info(self) -> Dict:
        if self._info is None:
            info = await self._get_json("/info")
            if "genesis_time" not in info or "period" not in info:
                raise BeaconError("Beacon chain info is missing genesis_time or period")
            self._info = info
        return self._info

    async def fetch_round(self, round_number: int) -> str:
        data = await self._get_json(f"/public/{round_number}")
        if "_status" in data:
            raise BeaconNotReadyError(round_number)

        randomness = str(data.get("randomness", "")).lower()
        if int(data.get("round", -1)) != round_number or not RANDOMNESS_RE.match(randomness):
            raise BeaconError(f"Unexpected beacon payload for round {round_number}")
        return randomness

    async def entropy_after(self, closed_at: Timestamp) -> str:
        """External entropy for a raffle that closed at closed_at"""
        info = await self.chain_info()
        round_number = round_after(closed_at, int(info["genesis_time"]), int(info["period"]))
        randomness = await self.fetch_round(round_number)
        logger.info(f"Fetched beacon round {round_number}")
        return format_entropy(round_number, randomness)


beacon_client = BeaconClient()
