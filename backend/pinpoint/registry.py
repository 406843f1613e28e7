"""
Pinpoint Backend — Service Registry
====================================

What:  Builds every long-lived collaborator of one application instance.
How:   `build_registry(settings)` wires Database, CredentialHasher,
       TokenCodec, RealtimeHub, EntityStore, UserService and FileService.
       `create_app()` stores the result on `app.state.registry`; routes
       reach it through the dependencies in dependencies.py.

Nothing here is a module-level singleton, so a test can build as many
isolated applications (each with its own database and hub) as it needs.
"""

from dataclasses import dataclass
from datetime import timedelta

from pinpoint.config import Settings
from pinpoint.database import Database
from pinpoint.security.credentials import CredentialHasher
from pinpoint.security.tokens import TokenCodec
from pinpoint.services.entity_store import EntityStore
from pinpoint.services.file_service import FileService
from pinpoint.services.realtime_service import RealtimeHub
from pinpoint.services.user_service import UserService


@dataclass
class ServiceRegistry:
    settings: Settings
    database: Database
    hasher: CredentialHasher
    codec: TokenCodec
    realtime: RealtimeHub
    store: EntityStore
    users: UserService
    files: FileService


def build_registry(settings: Settings) -> ServiceRegistry:
    hasher = CredentialHasher(n=settings.scrypt_n, r=settings.scrypt_r, p=settings.scrypt_p)
    codec = TokenCodec(
        service_name=settings.service_name,
        expires_in=timedelta(hours=settings.token_expire_hours),
    )
    realtime = RealtimeHub()
    store = EntityStore(hasher=hasher, realtime=realtime)

    return ServiceRegistry(
        settings=settings,
        database=Database(settings),
        hasher=hasher,
        codec=codec,
        realtime=realtime,
        store=store,
        users=UserService(store=store, hasher=hasher, codec=codec),
        files=FileService(
            upload_root=settings.upload_root,
            max_upload_size=settings.max_upload_size,
            serve_upload_path=settings.serve_upload_path,
        ),
    )
