import json
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
import pytest
from conftest import PDF_BYTES, auth
from creator_rewards.models.db import Submission, VideoStats
from creator_rewards.models.db.enums import UserRole


@pytest.fixture()
def actors(brand_factory, user_factory):
    brand = brand_factory()
    return {
        "brand": brand,
        "brand_user": user_factory(UserRole.BRAND, brand=brand),
        "creator": user_factory(UserRole.CREATOR),
        "admin": user_factory(UserRole.ADMIN),
    }


def _create_campaign(client: TestClient, brand_user, rewards):
    r = client.post(
        "/api/v1/campaigns/",
        json={"title": "Summer glow", "status": "active", "rewards": rewards},
        headers=auth(brand_user),
    )
    assert r.status_code == 201, r.text
    return r.json()


def _submit_and_accept(client: TestClient, db_session: Session, campaign_id, creator, brand_user, views):
    r = client.post(
        f"/api/v1/campaigns/{campaign_id}/submissions",
        json={"tiktok_video_id": f"vid-{views}-{creator.id}"},
        headers=auth(creator),
    )
    assert r.status_code == 201, r.text
    submission = r.json()
    assert submission["status"] == "pending"
    assert submission["stats"]["views"] == 0

    r = client.post(f"/api/v1/submissions/{submission['id']}/accept", headers=auth(brand_user))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "accepted"

    stats = db_session.get(VideoStats, submission["id"])
    stats.views = views
    db_session.commit()
    return submission["id"]


def _claim(client: TestClient, creator, reward_id, submission_id, ads_codes, *, with_file=True, method="invoice"):
    files = {"file": ("invoice.pdf", PDF_BYTES, "application/pdf")} if with_file else None
    return client.post(
        "/api/v1/invoices/",
        data={
            "reward_id": str(reward_id),
            "submission_id": str(submission_id),
            "payment_method": method,
            "ads_codes": json.dumps({str(k): v for k, v in ads_codes.items()}),
        },
        files=files,
        headers=auth(creator),
    )


def test_single_video_claim_flow(client: TestClient, db_session: Session, actors):
    brand_user, creator = actors["brand_user"], actors["creator"]
    campaign = _create_campaign(client, brand_user, [{"views_target": 100000, "amount_eur": 5000, "allow_multiple_videos": False}])
    assert campaign["uses_global_tiers"] is False
    reward_id = campaign["rewards"][0]["id"]
    sid = _submit_and_accept(client, db_session, campaign["id"], creator, brand_user, 100000)

    r = client.get(f"/api/v1/campaigns/{campaign['id']}/my-rewards-status", headers=auth(creator))
    assert r.status_code == 200, r.text
    status = r.json()
    assert len(status) == 1
    assert status[0]["is_unlocked"] is True
    assert status[0]["anchor_submission_id"] == sid
    assert status[0]["state"] == "unlocked_unclaimed"

    r = client.get(f"/api/v1/campaigns/{campaign['id']}/claim-scope", headers=auth(creator))
    assert [item["submission_id"] for item in r.json()] == [sid]

    r = _claim(client, creator, reward_id, sid, {sid: "ADS-123"})
    assert r.status_code == 201, r.text
    invoice = r.json()
    assert invoice["status"] == "uploaded"
    assert invoice["amount_eur"] == 5000
    assert invoice["pdf_url"].startswith("http://testserver/files/invoices/")

    r = client.post(f"/api/v1/invoices/{invoice['id']}/mark-paid", headers=auth(brand_user))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "paid"
    assert r.json()["paid_at"] is not None

    r = client.get(f"/api/v1/campaigns/{campaign['id']}/my-rewards-status", headers=auth(creator))
    assert r.json()[0]["state"] == "claim_paid"
    assert r.json()[0]["invoice"]["id"] == invoice["id"]

    r = client.get("/api/v1/notifications/", headers=auth(creator))
    types = {n["type"] for n in r.json()}
    assert {"submission_accepted", "invoice_paid"} <= types
    r = client.get("/api/v1/notifications/", headers=auth(brand_user))
    types = {n["type"] for n in r.json()}
    assert {"new_submission", "invoice_uploaded"} <= types


def test_multi_video_claim_requires_all_ads_codes(client: TestClient, db_session: Session, actors):
    brand_user, creator = actors["brand_user"], actors["creator"]
    campaign = _create_campaign(client, brand_user, [{"views_target": 100000, "amount_eur": 5000, "allow_multiple_videos": True}])
    reward_id = campaign["rewards"][0]["id"]
    first = _submit_and_accept(client, db_session, campaign["id"], creator, brand_user, 60000)
    second = _submit_and_accept(client, db_session, campaign["id"], creator, brand_user, 50000)

    status = client.get(f"/api/v1/campaigns/{campaign['id']}/my-rewards-status", headers=auth(creator)).json()
    assert status[0]["total_views"] == 110000
    assert status[0]["is_unlocked"] is True

    for codes, missing in (({first: "A"}, [second]), ({second: "B"}, [first])):
        r = _claim(client, creator, reward_id, first, codes)
        assert r.status_code == 400, r.text
        body = r.json()
        assert body["success"] is False
        assert body["code"] == "INCOMPLETE_ADS_CODES"
        assert body["details"]["missing_submission_ids"] == missing

    r = _claim(client, creator, reward_id, first, {first: "A", second: "B"})
    assert r.status_code == 201, r.text


def test_second_claim_is_rejected(client: TestClient, db_session: Session, actors):
    brand_user, creator = actors["brand_user"], actors["creator"]
    campaign = _create_campaign(client, brand_user, [{"views_target": 1000, "amount_eur": 500}])
    reward_id = campaign["rewards"][0]["id"]
    sid = _submit_and_accept(client, db_session, campaign["id"], creator, brand_user, 1000)

    assert _claim(client, creator, reward_id, sid, {sid: "X"}).status_code == 201
    r = _claim(client, creator, reward_id, sid, {sid: "X"}, with_file=False, method="gift_card")
    assert r.status_code == 409, r.text
    assert r.json()["code"] == "ALREADY_CLAIMED"


def test_refusing_accepted_submission_fails(client: TestClient, db_session: Session, actors):
    brand_user, creator = actors["brand_user"], actors["creator"]
    campaign = _create_campaign(client, brand_user, [{"views_target": 1000, "amount_eur": 500}])
    sid = _submit_and_accept(client, db_session, campaign["id"], creator, brand_user, 10)

    r = client.post(f"/api/v1/submissions/{sid}/refuse", json={"reason": "too late"}, headers=auth(brand_user))
    assert r.status_code == 409, r.text
    assert r.json()["code"] == "INVALID_STATE"

    r = client.get(f"/api/v1/submissions/{sid}", headers=auth(creator))
    assert r.status_code == 200
    assert r.json()["status"] == "accepted"


def test_invoice_claim_without_file(client: TestClient, db_session: Session, actors):
    brand_user, creator = actors["brand_user"], actors["creator"]
    campaign = _create_campaign(client, brand_user, [{"views_target": 10, "amount_eur": 500}])
    sid = _submit_and_accept(client, db_session, campaign["id"], creator, brand_user, 10)
    r = _claim(client, creator, campaign["rewards"][0]["id"], sid, {sid: "X"}, with_file=False)
    assert r.status_code == 400, r.text
    assert r.json()["code"] == "MISSING_FILE"


def test_gift_card_claim_without_file(client: TestClient, db_session: Session, actors):
    brand_user, creator = actors["brand_user"], actors["creator"]
    campaign = _create_campaign(client, brand_user, [{"views_target": 10, "amount_eur": 500}])
    sid = _submit_and_accept(client, db_session, campaign["id"], creator, brand_user, 10)
    r = _claim(client, creator, campaign["rewards"][0]["id"], sid, {sid: "X"}, with_file=False, method="gift_card")
    assert r.status_code == 201, r.text
    assert r.json()["payment_method"] == "gift_card"
    assert r.json()["pdf_url"] is None


def test_malformed_ads_codes_rejected(client: TestClient, db_session: Session, actors):
    brand_user, creator = actors["brand_user"], actors["creator"]
    campaign = _create_campaign(client, brand_user, [{"views_target": 10, "amount_eur": 500}])
    sid = _submit_and_accept(client, db_session, campaign["id"], creator, brand_user, 10)
    r = client.post(
        "/api/v1/invoices/",
        data={"reward_id": str(campaign["rewards"][0]["id"]), "submission_id": str(sid), "payment_method": "gift_card", "ads_codes": "[1, 2]"},
        headers=auth(creator),
    )
    assert r.status_code == 422


def test_creator_withdraws_pending_submission(client: TestClient, db_session: Session, actors):
    brand_user, creator = actors["brand_user"], actors["creator"]
    campaign = _create_campaign(client, brand_user, [{"views_target": 10, "amount_eur": 500}])
    r = client.post(f"/api/v1/campaigns/{campaign['id']}/submissions", json={"tiktok_video_id": "gone"}, headers=auth(creator))
    sid = r.json()["id"]
    r = client.delete(f"/api/v1/submissions/{sid}", headers=auth(creator))
    assert r.status_code == 204
    assert db_session.get(Submission, sid) is None


def test_duplicate_submission_conflict(client: TestClient, actors):
    brand_user, creator = actors["brand_user"], actors["creator"]
    campaign = _create_campaign(client, brand_user, [{"views_target": 10, "amount_eur": 500}])
    payload = {"tiktok_video_id": "same-video"}
    url = f"/api/v1/campaigns/{campaign['id']}/submissions"
    assert client.post(url, json=payload, headers=auth(creator)).status_code == 201
    r = client.post(url, json=payload, headers=auth(creator))
    assert r.status_code == 409
    assert r.json()["code"] == "DUPLICATE"


def test_review_requires_brand_role(client: TestClient, actors):
    brand_user, creator = actors["brand_user"], actors["creator"]
    campaign = _create_campaign(client, brand_user, [{"views_target": 10, "amount_eur": 500}])
    r = client.post(f"/api/v1/campaigns/{campaign['id']}/submissions", json={"tiktok_video_id": "v"}, headers=auth(creator))
    r = client.post(f"/api/v1/submissions/{r.json()['id']}/accept", headers=auth(creator))
    assert r.status_code == 403


def test_unauthenticated_requests_rejected(client: TestClient):
    r = client.get("/api/v1/campaigns/")
    assert r.status_code in (401, 403)
    r = client.get("/api/v1/campaigns/", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401
