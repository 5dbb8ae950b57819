"""Request dependencies shared by route modules."""

from fastapi import Request

from transfer_scheduler.services.composition import TransferServices


def get_services(request: Request) -> TransferServices:
    return request.app.state.services
