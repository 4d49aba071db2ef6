from __future__ import annotations

import pytest

from loan_portal.domain.entities.applicant import ApplicantStatus
from loan_portal.errors import NotFoundError, UnauthorizedError
from loan_portal.services.admin_review_service import MASK, AdminReviewService


@pytest.fixture
def admin(client, api, store) -> AdminReviewService:
    store.set(api.issue_token("admin@b.com"))
    api.add_credential("a@b.com", "P1", "ana", "bbva-pass")
    api.add_credential("a@b.com", "P2", "ana.s", "san-pass")
    return AdminReviewService(client)


async def test_secrets_masked_until_toggled(admin, api) -> None:
    view = await admin.fetch_credentials_for_applicant("u1")
    rows = view.render()["credentials"]
    assert [r["secret"] for r in rows] == [MASK, MASK]
    assert rows[0]["provider_name"] == "BBVA"
    assert view.render()["applicant"]["email"] == "a@b.com"

    target = rows[1]["id"]
    admin.toggle_reveal("u1", target)
    rows = admin.current_view("u1").render()["credentials"]
    assert rows[0]["secret"] == MASK
    assert rows[1]["secret"] == "san-pass"
    assert rows[1]["revealed"]

    admin.toggle_reveal("u1", target)
    assert admin.current_view("u1").render()["credentials"][1]["secret"] == MASK


async def test_reopen_resets_to_masked(admin) -> None:
    view = await admin.fetch_credentials_for_applicant("u1")
    cid = view.render()["credentials"][0]["id"]
    admin.toggle_reveal("u1", cid)
    admin.close_view()

    reopened = await admin.fetch_credentials_for_applicant("u1")
    assert not reopened.is_revealed(cid)
    assert all(r["secret"] == MASK for r in reopened.render()["credentials"])


async def test_view_is_read_only(admin, api) -> None:
    view = await admin.fetch_credentials_for_applicant("u1")
    admin.toggle_reveal("u1", view.render()["credentials"][0]["id"])
    writes = [c for c in api.calls if c[0] in ("POST", "PUT", "DELETE")]
    assert writes == []


async def test_toggle_requires_open_view(admin) -> None:
    with pytest.raises(NotFoundError):
        admin.toggle_reveal("u1", "c1")
    await admin.fetch_credentials_for_applicant("u1")
    with pytest.raises(NotFoundError):
        admin.toggle_reveal("u9", "c1")
    with pytest.raises(NotFoundError):
        admin.toggle_reveal("u1", "c-missing")


async def test_applicant_token_cannot_fetch(client, api, store) -> None:
    store.set(api.issue_token("a@b.com"))
    with pytest.raises(UnauthorizedError):
        await AdminReviewService(client).fetch_credentials_for_applicant("u1")


async def test_list_and_filter_applicants(admin) -> None:
    assert [a.id for a in await admin.list_applicants()] == ["u1"]
    assert await admin.list_applicants(status="approved") == []
    assert [a.full_name for a in await admin.list_applicants(search="lopez")] == ["Ana Lopez"]


async def test_update_status(admin, api) -> None:
    await admin.update_status("u1", ApplicantStatus.UNDER_REVIEW)
    assert api.users["a@b.com"]["status"] == "under_review"
