"""Request dependencies resolving the objects owned by the application."""

from fastapi import HTTPException, Request

from ..database import WalletDatabase
from ..storage.factory import StorageFactory
from ..storage.validator import TOSConfigValidator


def get_storage_factory(request: Request) -> StorageFactory:
    return request.app.state.storage_factory


def get_validator(request: Request) -> TOSConfigValidator:
    return request.app.state.validator


def get_wallet_database(request: Request) -> WalletDatabase:
    database = getattr(request.app.state, "wallet_database", None)
    if database is None:
        raise HTTPException(
            status_code=500,
            detail={"success": False, "message": "Wallet database is not configured"},
        )
    return database
