"""FastAPI dependencies for payments services."""

from services.payments_service.services.escrow_ledger import EscrowLedger


def get_escrow_ledger() -> EscrowLedger:
    return EscrowLedger()
