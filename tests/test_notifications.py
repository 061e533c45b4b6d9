import asyncio

import aiohttp
import pytest

from fairdraw.services import notifications
from fairdraw.services.notifications import NotificationService
from fairdraw.services.provably_fair import ProvablyFairService


def test_resolve_winners_keeps_draw_order(draw_input, tickets):
    proof = ProvablyFairService.generate(**draw_input)
    winners = NotificationService.resolve_winners(proof, tickets)

    assert [w.ticket_index for w in winners] == list(proof.winner_ticket_indexes)
    assert [w.position for w in winners] == [1, 2, 3]
    by_index = {t.index: t for t in tickets}
    for w in winners:
        assert w.ticket_id == by_index[w.ticket_index].id
        assert w.user_id == by_index[w.ticket_index].user_id


def test_resolve_winners_skips_unknown_index(draw_input, tickets):
    proof = ProvablyFairService.generate(**draw_input)
    missing = proof.winner_ticket_indexes[0]
    remaining = [t for t in tickets if t.index != missing]
    winners = NotificationService.resolve_winners(proof, remaining)
    assert len(winners) == 2


def test_notify_without_webhook_is_skipped(draw_input, tickets):
    proof = ProvablyFairService.generate(**draw_input)
    winners = NotificationService.resolve_winners(proof, tickets)
    assert asyncio.run(NotificationService.notify_winners("Raffle", proof, winners)) is False


class FakeResponse:
    def __init__(self, status):
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession, records posted payloads"""
    status = 200
    error = None
    posted = []

    def __init__(self, timeout=None):
        self.timeout = timeout

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def post(self, url, json=None):
        if self.error is not None:
            raise self.error
        FakeSession.posted.append((url, json))
        return FakeResponse(self.status)


@pytest.fixture
def webhook(monkeypatch):
    FakeSession.status = 200
    FakeSession.error = None
    FakeSession.posted = []
    monkeypatch.setattr(notifications.aiohttp, "ClientSession", FakeSession)
    return FakeSession


def test_notify_posts_announcement(webhook, draw_input, tickets):
    proof = ProvablyFairService.generate(**draw_input)
    winners = NotificationService.resolve_winners(proof, tickets)

    sent = asyncio.run(NotificationService.notify_winners(
        "Spring raffle", proof, winners, webhook_url="https://hooks.test/winners"
    ))

    assert sent is True
    (url, payload), = webhook.posted
    assert url == "https://hooks.test/winners"
    assert payload["raffleId"] == proof.raffle_id
    assert payload["title"] == "Spring raffle"
    assert payload["closedAt"] == proof.closed_at
    assert payload["seedCommitHash"] == proof.seed_commit_hash
    assert [w["ticketIndex"] for w in payload["winners"]] == list(proof.winner_ticket_indexes)
    assert "serverSeed" not in payload


def test_notify_uses_configured_webhook(webhook, monkeypatch, draw_input, tickets):
    monkeypatch.setattr(notifications.config, "WINNER_WEBHOOK_URL", "https://hooks.test/configured")
    proof = ProvablyFairService.generate(**draw_input)
    winners = NotificationService.resolve_winners(proof, tickets)

    assert asyncio.run(NotificationService.notify_winners("Raffle", proof, winners)) is True
    assert webhook.posted[0][0] == "https://hooks.test/configured"


def test_notify_reports_http_error(webhook, caplog, draw_input, tickets):
    webhook.status = 500
    proof = ProvablyFairService.generate(**draw_input)
    winners = NotificationService.resolve_winners(proof, tickets)

    with caplog.at_level("ERROR"):
        sent = asyncio.run(NotificationService.notify_winners(
            "Raffle", proof, winners, webhook_url="https://hooks.test/winners"
        ))

    assert sent is False
    assert "Winner webhook returned 500" in caplog.text


def test_notify_survives_connection_error(webhook, caplog, draw_input, tickets):
    webhook.error = aiohttp.ClientConnectionError("connection refused")
    proof = ProvablyFairService.generate(**draw_input)
    winners = NotificationService.resolve_winners(proof, tickets)

    with caplog.at_level("ERROR"):
        sent = asyncio.run(NotificationService.notify_winners(
            "Raffle", proof, winners, webhook_url="https://hooks.test/winners"
        ))

    assert sent is False
    assert webhook.posted == []
    assert "Error sending winner announcement" in caplog.text
