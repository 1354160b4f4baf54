import pytest
from sqlalchemy import select

from contact_center.config import OtpSettings
from contact_center.errors import ConflictError, OtpVerificationError, RateLimitError, ValidationError
from contact_center.models import AuditLog, Interaction, OtpChallenge
from contact_center.otp.hashing import generate_code, hash_code, verify_code
from contact_center.otp.service import OtpService
from contact_center.worker.queue import InMemoryJobQueue


@pytest.fixture
def queue():
    return InMemoryJobQueue()


@pytest.fixture
def otp(session, queue, clock, settings):
    return OtpService(
        session,
        OtpSettings(ttl_seconds=300, max_attempts=3, rate_limit_window_seconds=900, rate_limit_max=3),
        queue=queue,
        sms_settings=settings.twilio,
        now=clock,
    )


def _audits(session, action):
    return session.scalars(select(AuditLog).where(AuditLog.action == action)).all()


def test_code_hashing_round_trip():
    code = generate_code()
    assert len(code) == 6 and code.isdigit()
    hashed = hash_code(code)
    assert code not in hashed
    assert verify_code(code, hashed)
    assert not verify_code("000000" if code != "000000" else "111111", hashed)


def test_create_links_interaction_and_enqueues_job(otp, session, queue):
    created = otp.create("11 1234 5678", "LOGIN_2FA", "corr-1", template_data={"name": "Ana"})

    challenge = session.scalars(select(OtpChallenge)).one()
    assert challenge.status == "PENDING"
    assert challenge.phone == "+541112345678"
    assert challenge.interaction_id == created.interaction_id
    interaction = session.get(Interaction, created.interaction_id)
    assert interaction.channel == "SMS"
    assert interaction.direction == "OUTBOUND"
    assert interaction.from_number == "system"
    assert interaction.intent == "OTP_LOGIN_2FA"

    job = queue.jobs[0]
    assert job["otp_challenge_id"] == str(challenge.id)
    assert verify_code(job["otp"], challenge.otp_hash)
    assert job["template_data"] == {"name": "Ana"}
    assert len(_audits(session, "otp.create")) == 1


def test_create_validates_input(otp):
    with pytest.raises(ValidationError):
        otp.create("", "LOGIN_2FA", "corr-1")
    with pytest.raises(ValidationError):
        otp.create("1112345678", "NOT_A_PURPOSE", "corr-1")


def test_duplicate_correlation_id_conflicts(otp):
    otp.create("1112345678", "LOGIN_2FA", "corr-1")
    with pytest.raises(ConflictError):
        otp.create("1112345679", "LOGIN_2FA", "corr-1")


def test_rate_limit_per_phone_and_purpose(otp, clock):
    for i in range(3):
        otp.create("1112345678", "PASSWORD_RESET", f"corr-{i}")
    with pytest.raises(RateLimitError):
        otp.create("1112345678", "PASSWORD_RESET", "corr-3")

    # other purpose and other phone are independent
    otp.create("1112345678", "LOGIN_2FA", "corr-4")
    otp.create("1112345679", "PASSWORD_RESET", "corr-5")

    clock.advance(seconds=901)
    otp.create("1112345678", "PASSWORD_RESET", "corr-6")


def test_verify_success_completes_interaction(otp, session, queue, clock):
    created = otp.create("1112345678", "TX_CONFIRMATION", "corr-1")
    clock.advance(seconds=30)
    verified = otp.verify("corr-1", queue.jobs[0]["otp"])

    challenge = session.scalars(select(OtpChallenge)).one()
    assert challenge.status == "VERIFIED"
    assert challenge.attempts == 1
    assert verified.verified_at == clock()
    interaction = session.get(Interaction, created.interaction_id)
    assert interaction.status == "COMPLETED"
    assert interaction.outcome == "RESOLVED"
    assert interaction.ended_at is not None


def test_verify_rejects_reuse(otp, queue):
    otp.create("1112345678", "TX_CONFIRMATION", "corr-1")
    code = queue.jobs[0]["otp"]
    otp.verify("corr-1", code)
    with pytest.raises(OtpVerificationError) as excinfo:
        otp.verify("corr-1", code)
    assert excinfo.value.reason == "already_verified"


def test_wrong_code_counts_attempts_then_locks(otp, session, queue):
    otp.create("1112345678", "LOGIN_2FA", "corr-1")
    code = queue.jobs[0]["otp"]
    wrong = "000000" if code != "000000" else "111111"

    for expected_attempts in (1, 2):
        with pytest.raises(OtpVerificationError) as excinfo:
            otp.verify("corr-1", wrong)
        assert excinfo.value.reason == "invalid_otp"
        challenge = session.scalars(select(OtpChallenge)).one()
        assert challenge.attempts == expected_attempts
        assert challenge.status == "PENDING"

    with pytest.raises(OtpVerificationError):
        otp.verify("corr-1", wrong)
    assert session.scalars(select(OtpChallenge)).one().status == "LOCKED"

    # Even the right code is refused once locked.
    with pytest.raises(OtpVerificationError) as excinfo:
        otp.verify("corr-1", code)
    assert excinfo.value.reason == "locked"
    assert len(_audits(session, "otp.verify")) == 4


def test_expired_challenge(otp, session, queue, clock):
    otp.create("1112345678", "LOGIN_2FA", "corr-1")
    clock.advance(seconds=301)
    with pytest.raises(OtpVerificationError) as excinfo:
        otp.verify("corr-1", queue.jobs[0]["otp"])
    assert excinfo.value.reason == "expired"
    assert excinfo.value.commit_on_error
    assert session.scalars(select(OtpChallenge)).one().status == "EXPIRED"


def test_unknown_correlation_id_is_audited(otp, session):
    with pytest.raises(OtpVerificationError) as excinfo:
        otp.verify("missing", "123456")
    assert excinfo.value.reason == "not_found"
    (audit,) = _audits(session, "otp.verify")
    assert audit.entity_id == "missing"
    assert audit.details["success"] is False
