import datetime as dt
import itertools
import pathlib
import sys
from dataclasses import dataclass, field

import pytest
from fastapi import FastAPI, Request
from sqlalchemy.orm import Session, sessionmaker

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from contact_center.app_logging import init_logging
from contact_center.config import (
    ElevenLabsSettings,
    OtpSettings,
    Settings,
    SyncSettings,
    TwilioSettings,
)
from contact_center.errors import UpstreamError
from contact_center.models import Base
from contact_center.models.session import get_engine
from contact_center.normalizers import ElevenLabsNormalizer, NormalizedCall
from contact_center.phone import to_e164
from contact_center.providers.twilio_sms import SentSms

API_TOKEN = "test-api-token"
VOICE_TOKEN = "voice-secret"
WHATSAPP_TOKEN = "whatsapp-secret"
SMS_TOKEN = "sms-secret"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: dt.datetime) -> None:
        self.current = start

    def __call__(self) -> dt.datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + dt.timedelta(**kwargs)


class FakeVoiceClient:
    """Stand-in for the ElevenLabs client keyed by conversation id."""

    def __init__(self, settings: ElevenLabsSettings | None = None) -> None:
        self.settings = settings or ElevenLabsSettings(api_key="key", agent_id="agent")
        self.normalizer = ElevenLabsNormalizer()
        self.conversations: dict[str, dict] = {}
        self.failures: dict[str, Exception] = {}
        self.listing: list[dict] | None = None
        self.list_calls: list[dict] = []
        self.fetched: list[str] = []
        self.audio = b"ID3-fake-audio"

    def add(self, conversation_id: str, **detail) -> None:
        self.conversations[conversation_id] = {"conversation_id": conversation_id, **detail}

    def get_conversation(self, conversation_id: str) -> dict:
        if conversation_id in self.failures:
            raise self.failures[conversation_id]
        if conversation_id not in self.conversations:
            raise UpstreamError("elevenlabs API returned 404", provider="elevenlabs", status=404)
        return self.conversations[conversation_id]

    def get_conversation_audio(self, conversation_id: str) -> bytes:
        self.get_conversation(conversation_id)
        return self.audio

    def fetch_call_details(self, conversation_id: str) -> NormalizedCall:
        self.fetched.append(conversation_id)
        call = self.normalizer.normalize(self.get_conversation(conversation_id))
        if not call.recording_url:
            call.recording_url = f"api://elevenlabs/conversations/{conversation_id}/audio"
        return call

    def list_conversations(self, *, start, end, limit):
        self.list_calls.append({"start": start, "end": end, "limit": limit})
        if self.listing is not None:
            return self.listing[:limit]
        return [{"conversation_id": cid} for cid in self.conversations][:limit]


class FakeSmsClient:
    def __init__(self, settings: TwilioSettings | None = None) -> None:
        self.settings = settings or TwilioSettings()
        self.sent: list[tuple[str, str]] = []
        self.error: Exception | None = None
        self._ids = itertools.count(1)

    def send_sms(self, to: str, body: str) -> SentSms:
        if self.error is not None:
            raise self.error
        destination = to_e164(to, self.settings.default_country_code)
        self.sent.append((destination, body))
        return SentSms(sid=f"SM{next(self._ids):032d}", status="queued", to=destination)


class FakeWhatsAppClient:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.error: Exception | None = None

    def send_message(self, number: str, content: str, media_url: str | None = None) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append({"number": number, "content": content, "media_url": media_url})
        return f"wamid-{len(self.sent)}"


@pytest.fixture
def clock():
    return FrozenClock(dt.datetime(2026, 1, 15, 12, 0, tzinfo=dt.timezone.utc))


@pytest.fixture
def engine(tmp_path):
    engine = get_engine(f"sqlite:///{tmp_path / 'contact_center.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        api_token=API_TOKEN,
        elevenlabs=ElevenLabsSettings(api_key="key", agent_id="agent", webhook_token=VOICE_TOKEN),
        twilio=TwilioSettings(
            account_sid="AC123",
            auth_token="auth",
            from_number="+15550000000",
            webhook_token=SMS_TOKEN,
        ),
        otp=OtpSettings(),
        sync=SyncSettings(enabled=False),
    )


@pytest.fixture
def voice_client():
    return FakeVoiceClient()


@pytest.fixture
def sms_client():
    return FakeSmsClient()


@pytest.fixture
def whatsapp_client():
    return FakeWhatsAppClient()


@dataclass
class ApiContext:
    client: object
    session_factory: sessionmaker[Session]
    voice: FakeVoiceClient
    sms: FakeSmsClient
    whatsapp: FakeWhatsAppClient
    queue: object
    headers: dict[str, str] = field(
        default_factory=lambda: {"Authorization": f"Bearer {API_TOKEN}"}
    )


@pytest.fixture
def api(monkeypatch, tmp_path):
    """Full application over a file-backed SQLite database and fake vendors."""

    from starlette.testclient import TestClient

    from contact_center.config import get_settings, reset_settings_cache
    from contact_center.core import services
    from contact_center.core.limits import limiter
    from contact_center.models.session import get_session_factory, reset_session_factory
    from contact_center.sync.service import SyncService
    from contact_center.worker.queue import InMemoryJobQueue

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setenv("API_TOKEN", API_TOKEN)
    monkeypatch.setenv("ELEVENLABS_API_KEY", "key")
    monkeypatch.setenv("ELEVENLABS_AGENT_ID", "agent")
    monkeypatch.setenv("ELEVENLABS_WEBHOOK_TOKEN", VOICE_TOKEN)
    monkeypatch.setenv("BUILDERBOT_WEBHOOK_TOKEN", WHATSAPP_TOKEN)
    monkeypatch.setenv("TWILIO_WEBHOOK_TOKEN", SMS_TOKEN)
    monkeypatch.setenv("SYNC_ENABLED", "false")
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("PII_MASKING_ENABLED", raising=False)
    reset_settings_cache()
    reset_session_factory()
    services.reset_service_caches()
    limiter.reset()

    factory = get_session_factory()
    Base.metadata.create_all(factory.kw["bind"])

    voice = FakeVoiceClient(get_settings().elevenlabs)
    sms = FakeSmsClient()
    whatsapp = FakeWhatsAppClient()
    queue = InMemoryJobQueue()
    clients = services.ProviderClients(voice=voice, whatsapp=whatsapp, sms=sms)
    sync_service = SyncService(factory, voice, get_settings().sync)
    monkeypatch.setattr(services, "get_provider_clients", lambda: clients)
    monkeypatch.setattr(services, "get_job_queue", lambda: queue)
    monkeypatch.setattr(services, "get_sync_service", lambda: sync_service)

    from contact_center.main import app

    with TestClient(app) as client:
        yield ApiContext(
            client=client,
            session_factory=factory,
            voice=voice,
            sms=sms,
            whatsapp=whatsapp,
            queue=queue,
        )

    # Restore the cached factories before clearing them.
    monkeypatch.undo()
    reset_session_factory()
    reset_settings_cache()
    services.reset_service_caches()


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        @app.get("/api/interactions/client/{phone}")
        async def client(phone: str):
            return {"phone": phone}

        init_logging(app)
        return app

    return _create_app
