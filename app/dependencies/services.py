from fastapi import Request

from app.config import Settings
from app.services.payment_service import PaymentGateway
from app.storage.base import LedgerStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> LedgerStore:
    return request.app.state.storage


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def get_backup_queue(request: Request):
    return request.app.state.backup_queue
