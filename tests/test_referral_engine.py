from datetime import timedelta
from sqlalchemy.orm import Session
import pytest
from conftest import PDF_BYTES, MemoryBlobStore, TestingSessionLocal
from creator_rewards.errors import InsufficientBalance, InvalidAmount, InvalidState, NotFound, Unauthorized
from creator_rewards.models.db import Invoice, ReferralCommission, ReferralInvoice, Reward, User
from creator_rewards.models.db.enums import (
    CommissionStatus,
    InvoiceStatus,
    NotificationType,
    PaymentMethod,
    UserRole,
)
from creator_rewards.services import referral_engine
from creator_rewards.services.claim_workflow import GiftCardProof, InvoiceProof
from creator_rewards.utils.time import utc_now


@pytest.fixture()
def referral_world(brand_factory, user_factory, campaign_factory, submission_factory):
    brand = brand_factory()
    brand_user = user_factory(UserRole.BRAND, brand=brand)
    referrer = user_factory(UserRole.CREATOR, referral_percentage=10)
    referee = user_factory(UserRole.CREATOR, referred_by=referrer)
    campaign = campaign_factory(brand, [(10, 5000, False)])
    anchor = submission_factory(campaign, referee, 10)
    return brand_user, referrer, referee, campaign, anchor


@pytest.fixture()
def commission_factory(db_session, referral_world):
    """Available commissions for the referrer, oldest first."""
    _, referrer, referee, campaign, anchor = referral_world
    counter = iter(range(1, 1000))

    def _create(amount: int, status: CommissionStatus = CommissionStatus.AVAILABLE):
        # Each commission needs its own paid source invoice, one per tier
        tier = Reward(campaign_id=campaign.id, views_target=10 + next(counter), amount_eur=amount * 10)
        db_session.add(tier)
        db_session.flush()
        invoice = Invoice(
            reward_id=tier.id,
            campaign_id=campaign.id,
            submission_id=anchor.id,
            creator_id=referee.id,
            payment_method=PaymentMethod.GIFT_CARD,
            status=InvoiceStatus.PAID,
            amount_eur=amount * 10,
            views_target=10,
        )
        db_session.add(invoice)
        db_session.flush()
        commission = ReferralCommission(
            referrer_id=referrer.id,
            referee_id=referee.id,
            invoice_id=invoice.id,
            amount_eur=amount,
            status=status,
        )
        db_session.add(commission)
        db_session.commit()
        return commission
    return _create


# ---------- Referral links ----------

def test_register_referral_links_and_notifies(db_session: Session, user_factory, notifier):
    referrer = user_factory(UserRole.CREATOR)
    newcomer = user_factory(UserRole.CREATOR)
    linked = referral_engine.register_referral(db_session, newcomer, referrer.referral_code.lower(), notifier=notifier)
    assert linked.id == referrer.id
    db_session.expire_all()
    assert db_session.get(User, newcomer.id).referred_by_id == referrer.id
    assert notifier.types_for(referrer.id) == [NotificationType.REFERRAL_NEW_REFEREE]


def test_referral_link_rules(db_session: Session, user_factory, notifier):
    referrer = user_factory(UserRole.CREATOR)
    with pytest.raises(NotFound):
        referral_engine.register_referral(db_session, referrer, "NOPE00", notifier=notifier)
    with pytest.raises(InvalidState):
        referral_engine.register_referral(db_session, referrer, referrer.referral_code, notifier=notifier)

    referee = user_factory(UserRole.CREATOR, referred_by=referrer)
    other = user_factory(UserRole.CREATOR)
    with pytest.raises(InvalidState):
        referral_engine.register_referral(db_session, referee, other.referral_code, notifier=notifier)


def test_generate_referral_code_shape(db_session: Session):
    code = referral_engine.generate_referral_code(db_session)
    assert len(code) == 6
    assert code.isalnum() and code.upper() == code


# ---------- Commission lifecycle ----------

def test_on_invoice_paid_is_idempotent(db_session: Session, referral_world):
    _, referrer, referee, campaign, anchor = referral_world
    invoice = Invoice(
        reward_id=campaign.rewards[0].id, campaign_id=campaign.id, submission_id=anchor.id,
        creator_id=referee.id, payment_method=PaymentMethod.GIFT_CARD, status=InvoiceStatus.PAID,
        amount_eur=5000, views_target=10,
    )
    db_session.add(invoice)
    db_session.commit()
    first = referral_engine.on_invoice_paid(db_session, invoice)
    second = referral_engine.on_invoice_paid(db_session, invoice)
    db_session.commit()
    assert first.id == second.id
    assert first.amount_eur == 500
    assert db_session.query(ReferralCommission).count() == 1


def test_zero_commission_is_skipped(db_session: Session, referral_world):
    _, referrer, referee, campaign, anchor = referral_world
    invoice = Invoice(
        reward_id=campaign.rewards[0].id, campaign_id=campaign.id, submission_id=anchor.id,
        creator_id=referee.id, payment_method=PaymentMethod.GIFT_CARD, status=InvoiceStatus.PAID,
        amount_eur=9, views_target=10,
    )
    db_session.add(invoice)
    db_session.commit()
    assert referral_engine.on_invoice_paid(db_session, invoice) is None
    assert db_session.query(ReferralCommission).count() == 0


def test_promotion_respects_hold_period(db_session: Session, referral_world, commission_factory):
    _, referrer, _, _, _ = referral_world
    commission = commission_factory(500, CommissionStatus.PENDING)

    assert referral_engine.promote_commissions(db_session, now=utc_now()) == []
    assert referral_engine.available_balance(db_session, referrer.id) == 0

    later = utc_now() + timedelta(days=31)
    promoted = referral_engine.promote_commissions(db_session, now=later)
    assert [c.id for c in promoted] == [commission.id]
    db_session.refresh(commission)
    assert commission.status == CommissionStatus.AVAILABLE
    assert commission.available_at is not None
    assert referral_engine.available_balance(db_session, referrer.id) == 500


def test_promotion_with_zero_hold_is_immediate(db_session: Session, referral_world, commission_factory):
    commission_factory(300, CommissionStatus.PENDING)
    promoted = referral_engine.promote_commissions(db_session, now=utc_now() + timedelta(seconds=1), hold_days=0)
    assert len(promoted) == 1


# ---------- Withdrawals ----------

def test_withdrawal_consumes_fifo_prefix(db_session: Session, referral_world, commission_factory, notifier, blob_store):
    brand_user, referrer, _, _, _ = referral_world
    c1, c2, c3 = commission_factory(500), commission_factory(300), commission_factory(200)

    referral_invoice = referral_engine.request_withdrawal(
        db_session, referrer, 800, InvoiceProof(pdf=PDF_BYTES), notifier=notifier, blob_store=blob_store,
    )
    assert referral_invoice.status == InvoiceStatus.UPLOADED
    assert referral_invoice.amount_eur == 800
    assert referral_invoice.pdf_url in blob_store.files

    db_session.expire_all()
    assert db_session.get(ReferralCommission, c1.id).referral_invoice_id == referral_invoice.id
    assert db_session.get(ReferralCommission, c2.id).referral_invoice_id == referral_invoice.id
    assert db_session.get(ReferralCommission, c3.id).referral_invoice_id is None
    assert referral_engine.available_balance(db_session, referrer.id) == 200
    assert NotificationType.REFERRAL_INVOICE_UPLOADED in notifier.types_for(brand_user.id)

    dashboard = referral_engine.referral_dashboard(db_session, db_session.get(User, referrer.id))
    assert dashboard.available_amount == 200
    assert dashboard.reserved_amount == 800
    assert dashboard.total_earned == 1000
    assert dashboard.referee_count == 1


def test_withdrawal_amount_must_match_whole_commissions(db_session: Session, referral_world, commission_factory, notifier):
    _, referrer, _, _, _ = referral_world
    commission_factory(500)
    commission_factory(300)
    with pytest.raises(InvalidAmount) as exc:
        referral_engine.request_withdrawal(db_session, referrer, 600, GiftCardProof(), notifier=notifier)
    assert exc.value.details == {"nearest_lower": 500, "nearest_upper": 800}
    with pytest.raises(InvalidAmount) as exc:
        referral_engine.request_withdrawal(db_session, referrer, 100, GiftCardProof(), notifier=notifier)
    assert exc.value.details == {"nearest_lower": 0, "nearest_upper": 500}
    assert db_session.query(ReferralInvoice).count() == 0


def test_withdrawal_beyond_balance(db_session: Session, referral_world, commission_factory, notifier):
    _, referrer, _, _, _ = referral_world
    commission_factory(500)
    commission_factory(700, CommissionStatus.PENDING)
    with pytest.raises(InsufficientBalance):
        referral_engine.request_withdrawal(db_session, referrer, 1200, GiftCardProof(), notifier=notifier)
    with pytest.raises(InvalidAmount):
        referral_engine.request_withdrawal(db_session, referrer, 0, GiftCardProof(), notifier=notifier)


def test_reserved_commissions_cannot_be_withdrawn_twice(db_session: Session, referral_world, commission_factory, notifier):
    _, referrer, _, _, _ = referral_world
    commission_factory(500)
    referral_engine.request_withdrawal(db_session, referrer, 500, GiftCardProof(), notifier=notifier)
    with pytest.raises(InsufficientBalance):
        referral_engine.request_withdrawal(db_session, referrer, 500, GiftCardProof(), notifier=notifier)


def test_paying_withdrawal_marks_commissions_withdrawn(db_session: Session, referral_world, commission_factory, notifier):
    brand_user, referrer, _, _, _ = referral_world
    c1, c2 = commission_factory(500), commission_factory(300)
    referral_invoice = referral_engine.request_withdrawal(db_session, referrer, 500, GiftCardProof(), notifier=notifier)
    assert referral_invoice.pdf_url is None

    with pytest.raises(Unauthorized):
        referral_engine.mark_referral_invoice_paid(db_session, referral_invoice.id, referrer, notifier=notifier)

    paid = referral_engine.mark_referral_invoice_paid(db_session, referral_invoice.id, brand_user, notifier=notifier)
    assert paid.status == InvoiceStatus.PAID
    assert paid.paid_at is not None
    db_session.expire_all()
    assert db_session.get(ReferralCommission, c1.id).status == CommissionStatus.WITHDRAWN
    assert db_session.get(ReferralCommission, c2.id).status == CommissionStatus.AVAILABLE
    assert NotificationType.REFERRAL_INVOICE_PAID in notifier.types_for(referrer.id)

    dashboard = referral_engine.referral_dashboard(db_session, db_session.get(User, referrer.id))
    assert dashboard.withdrawn_amount == 500
    assert dashboard.available_amount == 300

    with pytest.raises(InvalidState):
        referral_engine.mark_referral_invoice_paid(db_session, referral_invoice.id, brand_user, notifier=notifier)


class ReservingBlobStore(MemoryBlobStore):
    """Stores the PDF while a parallel withdrawal reserves the same commissions."""

    def __init__(self, user_id: int, commission_ids: list[int]):
        super().__init__()
        self.user_id = user_id
        self.commission_ids = commission_ids

    def store(self, data: bytes, filename: str, content_type: str) -> str:
        url = super().store(data, filename, content_type)
        other = TestingSessionLocal()
        try:
            rival = ReferralInvoice(user_id=self.user_id, payment_method=PaymentMethod.GIFT_CARD, amount_eur=1)
            other.add(rival)
            other.flush()
            other.query(ReferralCommission).filter(ReferralCommission.id.in_(self.commission_ids)).update(
                {ReferralCommission.referral_invoice_id: rival.id}, synchronize_session=False
            )
            other.commit()
        finally:
            other.close()
        return url


def test_withdrawal_race_discards_uploaded_pdf(db_session: Session, referral_world, commission_factory, notifier):
    _, referrer, _, _, _ = referral_world
    commission = commission_factory(500)
    store = ReservingBlobStore(referrer.id, [commission.id])

    with pytest.raises(InvalidState):
        referral_engine.request_withdrawal(
            db_session, referrer, 500, InvoiceProof(pdf=PDF_BYTES), notifier=notifier, blob_store=store,
        )
    assert store.stored == 1
    assert store.files == {}
    assert db_session.query(ReferralInvoice).filter(ReferralInvoice.pdf_url.isnot(None)).count() == 0
