from sqlalchemy.orm import Session
import pytest
from conftest import TestingSessionLocal
from creator_rewards.errors import NotFound
from creator_rewards.models.db import Invoice, RewardUnlock
from creator_rewards.models.db.enums import InvoiceStatus, PaymentMethod, RewardState, SubmissionStatus, UserRole
from creator_rewards.services import submission_state
from creator_rewards.services.reward_status import get_reward_status, record_unlock, unlocked_reward_ids


@pytest.fixture()
def world(brand_factory, user_factory):
    brand = brand_factory()
    return brand, user_factory(UserRole.CREATOR)


def test_single_tier_unlocks_with_anchor(db_session: Session, world, campaign_factory, submission_factory):
    brand, creator = world
    campaign = campaign_factory(brand, [(100000, 5000, False)])
    submission = submission_factory(campaign, creator, 100000)

    entries = get_reward_status(db_session, creator.id, campaign.id)
    db_session.commit()

    assert len(entries) == 1
    entry = entries[0]
    assert entry.is_unlocked is True
    assert entry.state == RewardState.UNLOCKED_UNCLAIMED
    assert entry.anchor_submission_id == submission.id
    assert entry.total_views == 100000
    assert entry.unlocked_at is not None
    assert entry.is_claimable


def test_locked_tier_has_no_anchor(db_session: Session, world, campaign_factory, submission_factory):
    brand, creator = world
    campaign = campaign_factory(brand, [(100000, 5000, False)])
    submission_factory(campaign, creator, 99999)
    entry = get_reward_status(db_session, creator.id, campaign.id)[0]
    assert entry.is_unlocked is False
    assert entry.state == RewardState.LOCKED
    assert entry.anchor_submission_id is None
    assert db_session.query(RewardUnlock).count() == 0


def test_pending_and_refused_submissions_do_not_count(db_session: Session, world, campaign_factory, submission_factory):
    brand, creator = world
    campaign = campaign_factory(brand, [(1000, 100, True)])
    submission_factory(campaign, creator, 5000, status=SubmissionStatus.PENDING)
    submission_factory(campaign, creator, 5000, status=SubmissionStatus.REFUSED)
    entry = get_reward_status(db_session, creator.id, campaign.id)[0]
    assert entry.total_views == 0
    assert entry.state == RewardState.LOCKED


def test_other_creators_views_are_ignored(db_session: Session, world, campaign_factory, submission_factory, user_factory):
    brand, creator = world
    campaign = campaign_factory(brand, [(1000, 100, True)])
    submission_factory(campaign, user_factory(UserRole.CREATOR), 5000)
    entry = get_reward_status(db_session, creator.id, campaign.id)[0]
    assert entry.is_unlocked is False


def test_unlock_ratchet_survives_view_drop(db_session: Session, world, campaign_factory, submission_factory, set_views):
    brand, creator = world
    campaign = campaign_factory(brand, [(100000, 5000, False)])
    submission = submission_factory(campaign, creator, 120000)
    get_reward_status(db_session, creator.id, campaign.id)
    db_session.commit()

    set_views(submission, 40000)  # moderation takedown
    entry = get_reward_status(db_session, creator.id, campaign.id)[0]
    assert entry.total_views == 40000
    assert entry.is_unlocked is True
    assert entry.state == RewardState.UNLOCKED_UNCLAIMED
    assert entry.anchor_submission_id == submission.id

    unlock = db_session.query(RewardUnlock).one()
    assert unlock.views_at_unlock == 120000


def test_unlock_ratchet_survives_threshold_raise(db_session: Session, world, campaign_factory, submission_factory):
    brand, creator = world
    campaign = campaign_factory(brand, [(1000, 500, False)])
    submission_factory(campaign, creator, 1500)
    get_reward_status(db_session, creator.id, campaign.id)
    db_session.commit()

    campaign.rewards[0].views_target = 1000000
    db_session.commit()
    entry = get_reward_status(db_session, creator.id, campaign.id)[0]
    assert entry.views_target == 1000000
    assert entry.is_unlocked is True


def test_unlock_rows_written_once(db_session: Session, world, campaign_factory, submission_factory):
    brand, creator = world
    campaign = campaign_factory(brand, [(10, 1, True), (20, 2, True)])
    submission_factory(campaign, creator, 25)
    for _ in range(3):
        get_reward_status(db_session, creator.id, campaign.id)
        db_session.commit()
    assert db_session.query(RewardUnlock).count() == 2


def test_claim_states_follow_invoice(db_session: Session, world, campaign_factory, submission_factory):
    brand, creator = world
    campaign = campaign_factory(brand, [(100, 1000, False), (200, 2000, False)])
    anchor = submission_factory(campaign, creator, 500)
    low, high = campaign.rewards
    invoice = Invoice(
        reward_id=low.id, campaign_id=campaign.id, submission_id=anchor.id, creator_id=creator.id,
        payment_method=PaymentMethod.GIFT_CARD, amount_eur=1000, views_target=100,
    )
    db_session.add(invoice)
    db_session.commit()

    entries = {e.reward_id: e for e in get_reward_status(db_session, creator.id, campaign.id)}
    assert entries[low.id].state == RewardState.CLAIM_UPLOADED
    assert entries[low.id].invoice.id == invoice.id
    assert entries[low.id].is_claimable is False
    assert entries[high.id].state == RewardState.UNLOCKED_UNCLAIMED

    invoice.status = InvoiceStatus.PAID
    db_session.commit()
    entries = {e.reward_id: e for e in get_reward_status(db_session, creator.id, campaign.id)}
    assert entries[low.id].state == RewardState.CLAIM_PAID


def test_global_tiers_used_when_campaign_has_none(db_session: Session, world, campaign_factory, submission_factory, global_tier_factory):
    brand, creator = world
    campaign = campaign_factory(brand)
    global_tier_factory(1000, 100)
    global_tier_factory(5000, 500)
    submission_factory(campaign, creator, 2000)

    entries = get_reward_status(db_session, creator.id, campaign.id)
    assert [e.views_target for e in entries] == [1000, 5000]
    assert [e.is_unlocked for e in entries] == [True, False]
    assert len(unlocked_reward_ids(entries)) == 1


def test_injected_global_provider_overrides_database(db_session: Session, world, campaign_factory, global_tier_factory):
    brand, creator = world
    campaign = campaign_factory(brand)
    tier = global_tier_factory(1000, 100)
    assert get_reward_status(db_session, creator.id, campaign.id, global_tier_provider=lambda: []) == []
    entries = get_reward_status(db_session, creator.id, campaign.id, global_tier_provider=lambda: [tier])
    assert [e.reward_id for e in entries] == [tier.id]


def test_no_tiers_at_all_returns_empty(db_session: Session, world, campaign_factory):
    brand, creator = world
    campaign = campaign_factory(brand)
    assert get_reward_status(db_session, creator.id, campaign.id) == []


def test_unknown_campaign(db_session: Session, world):
    _, creator = world
    with pytest.raises(NotFound):
        get_reward_status(db_session, creator.id, 987654)


def test_unlocked_tier_loses_anchor_when_submission_deleted(db_session: Session, world, campaign_factory, submission_factory, user_factory):
    brand, creator = world
    brand_user = user_factory(UserRole.BRAND, brand=brand)
    campaign = campaign_factory(brand, [(100000, 5000, False)])
    submission = submission_factory(campaign, creator, 100000)
    get_reward_status(db_session, creator.id, campaign.id)
    db_session.commit()

    submission_state.delete(db_session, submission.id, brand_user)

    entry = get_reward_status(db_session, creator.id, campaign.id)[0]
    assert entry.total_views == 0
    assert entry.is_unlocked is True
    assert entry.state == RewardState.UNLOCKED_UNCLAIMED
    assert entry.anchor_submission_id is None
    assert not entry.is_claimable


def test_record_unlock_keeps_row_written_concurrently(db_session: Session, world, campaign_factory):
    brand, creator = world
    campaign = campaign_factory(brand, [(1000, 100, True)])
    reward_id = campaign.rewards[0].id

    other = TestingSessionLocal()
    try:
        other.add(RewardUnlock(creator_id=creator.id, campaign_id=campaign.id, reward_id=reward_id, views_at_unlock=1500))
        other.commit()
    finally:
        other.close()

    unlock, created = record_unlock(db_session, creator.id, campaign.id, reward_id, 2000)
    assert created is False
    assert unlock.views_at_unlock == 1500
    db_session.commit()
    assert db_session.query(RewardUnlock).count() == 1


def test_record_unlock_inserts_once(db_session: Session, world, campaign_factory):
    brand, creator = world
    campaign = campaign_factory(brand, [(1000, 100, True)])
    reward_id = campaign.rewards[0].id

    first, created = record_unlock(db_session, creator.id, campaign.id, reward_id, 1200)
    assert created is True
    db_session.commit()
    again, created_again = record_unlock(db_session, creator.id, campaign.id, reward_id, 1300)
    assert created_again is False
    assert again.id == first.id
    assert again.views_at_unlock == 1200
