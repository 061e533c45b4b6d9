from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

PROOF_VERSION = "v1"
PROOF_ALGORITHM = "commit-reveal-sha256-counter-rejection"
CANONICAL_TIMESTAMP_PATTERN = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$"


class CamelModel(BaseModel):
    """Published documents use camelCase keys; Python code uses snake_case"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class Ticket(CamelModel):
    id: str
    raffle_id: str
    user_id: str
    index: int = Field(ge=1)
    price_paid: int = 0
    client_seed: str = ""
    created_at: datetime

    class Config:
        frozen = True


class TicketImport(CamelModel):
    """Ticket record handed over by the sales system"""
    id: Optional[str] = None
    user_id: str
    index: int = Field(ge=1)
    price_paid: int = Field(0, ge=0)
    client_seed: str = ""
    created_at: Optional[datetime] = None


class Proof(CamelModel):
    version: str = PROOF_VERSION
    algorithm: str = PROOF_ALGORITHM
    raffle_id: str
    seed_commit_hash: str = Field(pattern=r"^[0-9a-f]{64}$")
    server_seed: str
    external_entropy: str
    closed_at: str = Field(pattern=CANONICAL_TIMESTAMP_PATTERN)
    winner_ticket_indexes: Tuple[int, ...]
    winner_count: int = Field(ge=0)
    ticket_count: int = Field(ge=0)

    class Config:
        frozen = True

    @field_validator("winner_ticket_indexes")
    @classmethod
    def indexes_positive_and_distinct(cls, v):
        if any(i < 1 for i in v):
            raise ValueError("winner ticket indexes must be positive")
        if len(set(v)) != len(v):
            raise ValueError("winner ticket indexes must be distinct")
        return v


class FailureReason(str, Enum):
    CLOSED_AT_MISMATCH = "closed_at_mismatch"
    HASH_MISMATCH = "hash_mismatch"
    SELECTION_MISMATCH = "selection_mismatch"
    MALFORMED_PROOF = "malformed_proof"


class VerificationResult(CamelModel):
    valid: bool
    reason: Optional[FailureReason] = None

    class Config:
        frozen = True


class RaffleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    winner_count: int = Field(1, ge=1)
    closes_at: Optional[datetime] = None


class Raffle(BaseModel):
    id: str
    title: str
    status: str
    winner_count: int
    seed_commit_hash: str
    ticket_count: Optional[int] = 0
    opened_at: datetime
    closes_at: Optional[datetime] = None
    closed_at: Optional[str] = None
    drawn_at: Optional[datetime] = None
    has_proof: bool = False

    class Config:
        from_attributes = True


class DrawRequest(BaseModel):
    external_entropy: Optional[str] = Field(None, min_length=16, max_length=256)
    winner_count: Optional[int] = Field(None, ge=0)


class WinnerInfo(CamelModel):
    position: int
    ticket_id: str
    ticket_index: int
    user_id: str


class ProofResponse(BaseModel):
    proof: Proof
    verification: VerificationResult
    winners: List[WinnerInfo]


class VerifyRequest(CamelModel):
    proof: dict
    tickets: List[Ticket]
    expected_closed_at: str
