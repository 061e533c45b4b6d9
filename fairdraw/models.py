from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base

RAFFLE_OPEN = "open"
RAFFLE_CLOSED = "closed"
RAFFLE_DRAWN = "drawn"
RAFFLE_FAILED = "failed"


class Raffle(Base):
    __tablename__ = "raffles"

    id = Column(String(64), primary_key=True)
    title = Column(String(200))
    status = Column(String(16), default=RAFFLE_OPEN, index=True)
    winner_count = Column(Integer, default=1)
    seed_commit_hash = Column(String(64), nullable=False)  # публикуется сразу
    encrypted_server_seed = Column(String, nullable=False)  # раскрывается только в proof
    opened_at = Column(DateTime(timezone=True), server_default=func.now())
    closes_at = Column(DateTime(timezone=True), nullable=True)  # плановое закрытие продаж
    closed_at = Column(String(24), nullable=True)  # канонический ISO-8601, входит в seed material
    drawn_at = Column(DateTime(timezone=True), nullable=True)
    proof = Column(JSON, nullable=True)

    tickets = relationship("Ticket", back_populates="raffle")


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint('raffle_id', 'index', name='_raffle_ticket_index_uc'),
    )

    id = Column(String(64), primary_key=True)
    raffle_id = Column(String(64), ForeignKey("raffles.id"), index=True)
    user_id = Column(String(64), index=True)
    index = Column(Integer, nullable=False)
    price_paid = Column(Integer, default=0)
    client_seed = Column(String(128), default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    raffle = relationship("Raffle", back_populates="tickets")
