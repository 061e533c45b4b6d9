class FairDrawError(Exception):
    """Base error for the draw subsystem"""


class CommitmentIntegrityError(FairDrawError):
    """Revealed server seed does not hash to the published commitment.

    Treated as a fraud indicator: never retried, never turned into a proof.
    """

    def __init__(self, raffle_id: str):
        self.raffle_id = raffle_id
        super().__init__(f"Server seed does not match commit hash for raffle {raffle_id}")


class TicketValidationError(FairDrawError, ValueError):
    """Ticket data supplied by the ticket store is malformed"""


class DuplicateTicketIndexError(TicketValidationError):
    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Duplicate ticket index {index}")


class EntropyValidationError(FairDrawError, ValueError):
    """External entropy value is unusable"""


class SeedVaultError(FairDrawError):
    """Server seed could not be sealed or opened"""


class BeaconError(FairDrawError):
    """Randomness beacon request failed"""


class BeaconNotReadyError(BeaconError):
    """Requested beacon round has not been published yet"""

    def __init__(self, round_number: int):
        self.round_number = round_number
        super().__init__(f"Beacon round {round_number} is not published yet")


class RaffleStateError(FairDrawError):
    """Operation is not allowed in the raffle's current status"""
