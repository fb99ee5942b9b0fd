from __future__ import annotations

from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
from sqlmodel import Session

from newport.core.errors import ErrorCode, ServiceError
from newport.core.security import sign_invite
from newport.crud.invite_crud import InviteCRUD, expire_stale_invites
from newport.db.session import engine
from newport.models import Apartment, Invite, InviteStatus
from tests.conftest import MEMBER_ID, OWNER_ID, STRANGER_ID, auth_header, reload


def issue(client, apartment_ids=("apt-1",), user_id=OWNER_ID):
    return client.post("/invites", json={"apartmentIds": list(apartment_ids)}, headers=auth_header(user_id))


def signature_of(invite_url: str) -> str:
    return parse_qs(urlparse(invite_url).query)["sig"][0]


def test_owner_issues_signed_invite(client, session, directory):
    resp = issue(client)
    assert resp.status_code == 200
    data = resp.json()
    assert data["inviteUrl"].startswith(f"https://newport.app/invite/{data['inviteId']}?sig=")
    assert signature_of(data["inviteUrl"]) == sign_invite(data["inviteId"], data["expiresAt"])

    invite = reload(session, Invite, data["inviteId"])
    assert invite.status == InviteStatus.pending
    assert invite.apartment_ids == ["apt-1"]


def test_only_owner_can_invite(client, directory):
    assert issue(client, user_id=MEMBER_ID).status_code == 403
    assert issue(client, apartment_ids=("apt-1", "apt-2")).status_code == 403
    assert issue(client, apartment_ids=("apt-404",)).status_code == 404


def test_accept_adds_family_member_once(client, session, directory):
    data = issue(client).json()
    signature = signature_of(data["inviteUrl"])

    resp = client.post(f"/invites/{data['inviteId']}/accept", json={"signature": signature},
                       headers=auth_header(STRANGER_ID))
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "apartmentIds": ["apt-1"]}

    apartment = reload(session, Apartment, "apt-1")
    assert apartment.family_member_ids == [MEMBER_ID, STRANGER_ID]
    invite = session.get(Invite, data["inviteId"])
    assert invite.status == InviteStatus.consumed
    assert invite.consumed_by == STRANGER_ID

    again = client.post(f"/invites/{data['inviteId']}/accept", json={"signature": signature},
                        headers=auth_header("another-user"))
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "failed-precondition"


def test_accept_with_bad_signature(client, session, directory):
    data = issue(client).json()
    resp = client.post(f"/invites/{data['inviteId']}/accept", json={"signature": "0" * 16},
                       headers=auth_header(STRANGER_ID))
    assert resp.status_code == 403
    assert reload(session, Invite, data["inviteId"]).status == InviteStatus.pending


def test_expired_invite_is_marked_and_rejected(client, session, directory):
    data = issue(client).json()
    signature = signature_of(data["inviteUrl"])

    with patch("newport.crud.invite_crud.current_time_ms", return_value=data["expiresAt"] + 1):
        resp = client.post(f"/invites/{data['inviteId']}/accept", json={"signature": signature},
                           headers=auth_header(STRANGER_ID))
    assert resp.status_code == 409
    assert reload(session, Invite, data["inviteId"]).status == InviteStatus.expired
    assert STRANGER_ID not in session.get(Apartment, "apt-1").family_member_ids


def test_unknown_invite(client, directory):
    resp = client.post("/invites/missing/accept", json={"signature": "x"}, headers=auth_header(STRANGER_ID))
    assert resp.status_code == 404


def test_revoke(client, session, directory):
    data = issue(client).json()

    assert client.post(f"/invites/{data['inviteId']}/revoke", headers=auth_header(MEMBER_ID)).status_code == 403

    resp = client.post(f"/invites/{data['inviteId']}/revoke", headers=auth_header())
    assert resp.json() == {"success": True, "status": "revoked"}

    # revoked is terminal
    assert client.post(f"/invites/{data['inviteId']}/revoke", headers=auth_header()).status_code == 409
    resp = client.post(f"/invites/{data['inviteId']}/accept", json={"signature": signature_of(data["inviteUrl"])},
                       headers=auth_header(STRANGER_ID))
    assert resp.status_code == 409


def test_expire_stale_invites(session, directory):
    for invite_id, expires_at, status in [
        ("old", 1000, InviteStatus.pending),
        ("fresh", 5000, InviteStatus.pending),
        ("used", 1000, InviteStatus.consumed),
    ]:
        session.add(Invite(id=invite_id, created_by=OWNER_ID, expires_at=expires_at,
                           signature=sign_invite(invite_id, expires_at), status=status))
    session.commit()

    assert expire_stale_invites(session, now_ms=2000) == 1
    assert session.get(Invite, "old").status == InviteStatus.expired
    assert session.get(Invite, "fresh").status == InviteStatus.pending
    assert session.get(Invite, "used").status == InviteStatus.consumed


def test_simultaneous_accepts_consume_the_invite_once(client, session, directory):
    data = issue(client).json()
    signature = signature_of(data["inviteUrl"])

    with Session(engine) as first, Session(engine) as second:
        # both requests have loaded the invite while it is still pending
        assert first.get(Invite, data["inviteId"]).status == InviteStatus.pending
        assert second.get(Invite, data["inviteId"]).status == InviteStatus.pending

        InviteCRUD(first).accept_invite(data["inviteId"], STRANGER_ID, signature)
        with pytest.raises(ServiceError) as excinfo:
            InviteCRUD(second).accept_invite(data["inviteId"], "intruder", signature)

    assert excinfo.value.code == ErrorCode.FAILED_PRECONDITION
    assert reload(session, Apartment, "apt-1").family_member_ids == [MEMBER_ID, STRANGER_ID]
    invite = session.get(Invite, data["inviteId"])
    assert invite.status == InviteStatus.consumed
    assert invite.consumed_by == STRANGER_ID


def test_simultaneous_accepts_of_different_invites_keep_every_member(client, session, directory):
    first_invite = issue(client).json()
    second_invite = issue(client).json()

    with Session(engine) as first, Session(engine) as second:
        # the second request read the apartment before the first one committed
        assert second.get(Apartment, "apt-1").family_member_ids == [MEMBER_ID]

        InviteCRUD(first).accept_invite(first_invite["inviteId"], STRANGER_ID,
                                        signature_of(first_invite["inviteUrl"]))
        InviteCRUD(second).accept_invite(second_invite["inviteId"], "newcomer",
                                         signature_of(second_invite["inviteUrl"]))

    assert reload(session, Apartment, "apt-1").family_member_ids == [MEMBER_ID, STRANGER_ID, "newcomer"]
