"""Request-scoped accessors for the services built in ``create_app``."""

from fastapi import Request

from pocketledger.core.config import Settings
from pocketledger.db.dal import Database
from pocketledger.services.app_settings import UserPreferences
from pocketledger.services.ledger import LedgerEngine
from pocketledger.services.rates.conversion import CurrencyConverter


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_engine(request: Request) -> LedgerEngine:
    return request.app.state.engine


def get_preferences(request: Request) -> UserPreferences:
    return request.app.state.preferences


def get_converter(request: Request) -> CurrencyConverter:
    return request.app.state.converter


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
