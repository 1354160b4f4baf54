"""Per-request service wiring shared by the routers.

Routers open a :func:`service_context`, call one service method and serialise
the result inside the block. The context owns the transaction: it commits on
success and translates :class:`~contact_center.errors.ContactCenterError` into
``HTTPException`` with the error's status code.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..audit import AuditLogger
from ..config import Settings, get_settings
from ..customers.service import CustomerService
from ..errors import ContactCenterError
from ..interactions.service import InteractionQueryService
from ..interactions.store import InteractionStore
from ..messaging.service import MessagingService
from ..models.session import get_session_factory
from ..otp.service import OtpService
from ..providers.builderbot import BuilderBotClient
from ..providers.elevenlabs import ElevenLabsClient
from ..providers.twilio_sms import TwilioSmsClient
from ..sync.service import SyncService
from ..webhooks.service import WebhookDispatcher
from ..worker.queue import CeleryJobQueue, JobQueue

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ProviderClients:
    voice: ElevenLabsClient
    whatsapp: BuilderBotClient
    sms: TwilioSmsClient


@lru_cache(maxsize=1)
def get_provider_clients() -> ProviderClients:
    settings = get_settings()
    return ProviderClients(
        voice=ElevenLabsClient(settings.elevenlabs),
        whatsapp=BuilderBotClient(settings.builderbot),
        sms=TwilioSmsClient(settings.twilio),
    )


@lru_cache(maxsize=1)
def get_job_queue() -> JobQueue:
    return CeleryJobQueue()


@lru_cache(maxsize=1)
def get_sync_service() -> SyncService:
    settings = get_settings()
    return SyncService(
        get_session_factory(),
        get_provider_clients().voice,
        settings.sync,
        voice_settings=settings.elevenlabs,
    )


def reset_service_caches() -> None:
    """Drop cached clients, queue and sync service; used by tests."""

    get_provider_clients.cache_clear()
    get_job_queue.cache_clear()
    get_sync_service.cache_clear()


class Services:
    """Services bound to one request session."""

    def __init__(
        self,
        session: Session,
        settings: Settings,
        clients: ProviderClients,
        queue: JobQueue,
    ) -> None:
        self.session = session
        self.settings = settings
        self.clients = clients
        self.queue = queue
        self.store = InteractionStore(session)
        self.audit = AuditLogger(session)

    @property
    def customers(self) -> CustomerService:
        return CustomerService(self.session)

    def interactions(self, *, mask_pii: bool = False) -> InteractionQueryService:
        return InteractionQueryService(
            self.session,
            store=self.store,
            voice_client=self.clients.voice,
            mask_pii=mask_pii,
        )

    @property
    def otp(self) -> OtpService:
        return OtpService(
            self.session,
            self.settings.otp,
            queue=self.queue,
            store=self.store,
            audit=self.audit,
            sms_settings=self.settings.twilio,
        )

    @property
    def messaging(self) -> MessagingService:
        return MessagingService(
            self.store,
            self.audit,
            sms_client=self.clients.sms,
            whatsapp_client=self.clients.whatsapp,
            frontend_url=self.settings.frontend_url,
        )

    @property
    def webhooks(self) -> WebhookDispatcher:
        return WebhookDispatcher(
            self.settings,
            store=self.store,
            audit=self.audit,
            customers=self.customers,
            voice_client=self.clients.voice,
        )


def open_services() -> Services:
    try:
        session = get_session_factory()()
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return Services(session, get_settings(), get_provider_clients(), get_job_queue())


@contextmanager
def service_context() -> Iterator[Services]:
    services = open_services()
    session = services.session
    try:
        yield services
        session.commit()
    except ContactCenterError as exc:
        if exc.commit_on_error:
            session.commit()
        else:
            session.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except HTTPException:
        session.rollback()
        raise
    except Exception as exc:
        session.rollback()
        logger.exception("Unhandled error in request")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        session.close()


__all__ = [
    "ProviderClients",
    "Services",
    "get_job_queue",
    "get_provider_clients",
    "get_sync_service",
    "open_services",
    "reset_service_caches",
    "service_context",
]
