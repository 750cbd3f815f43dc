from motor.motor_asyncio import AsyncIOMotorClient # Async MongoDB driver
from beanie import init_beanie # ODM for MongoDB
from typing import Type

from .. import config
from .admin import Admin
from .member import Member
from .message import Message
from .tenant import Tenant

# Every Beanie model must be listed here to be initialised
DOCUMENT_MODELS: list[Type] = [Message, Admin, Member, Tenant]

client = None  # one client for the lifetime of the process

async def init_db():
    """
    Open the MongoDB connection and initialise Beanie.
    Only a single client is ever created.
    """
    global client

    if client is not None:
        return client

    if not config.MONGO_URI:
        raise ValueError("MONGO_URI is not set in the environment.")

    client = AsyncIOMotorClient(config.MONGO_URI)
    database = client.get_database(config.MONGO_DB_NAME)

    await init_beanie(database=database, document_models=DOCUMENT_MODELS)

    return client
