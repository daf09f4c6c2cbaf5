"""Table-driven RBAC tests.

Each row describes: endpoint, method, caller, expected HTTP status.
Callers are real users seeded in the repo because the request
dependencies reload role and approval from the stored record.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.conftest import create_course, create_user, headers

_CALLERS = {
    "learner": lambda: create_user("learner"),
    "creator": lambda: create_user("creator", approved=True),
    "pending": lambda: create_user("creator"),
    "admin": lambda: create_user("admin"),
    None: lambda: None,
}

_COURSE_BODY = {"title": "T", "description": "D"}

_RBAC_CASES = [
    # (endpoint, method, caller, expected_status)
    # public catalogue
    ("/api/courses", "GET", None, 200),
    ("/api/courses", "GET", "learner", 200),
    # authoring: approved creators and admins
    ("/api/courses", "POST", "creator", 201),
    ("/api/courses", "POST", "admin", 201),
    ("/api/courses", "POST", "pending", 403),
    ("/api/courses", "POST", "learner", 403),
    ("/api/courses", "POST", None, 401),
    # own course list: approval not required
    ("/api/creator/courses", "GET", "creator", 200),
    ("/api/creator/courses", "GET", "pending", 200),
    ("/api/creator/courses", "GET", "admin", 200),
    ("/api/creator/courses", "GET", "learner", 403),
    ("/api/creator/courses", "GET", None, 401),
    # learner-only flow
    ("/api/enroll/{course}", "POST", "learner", 201),
    ("/api/enroll/{course}", "POST", "creator", 403),
    ("/api/enroll/{course}", "POST", "admin", 403),
    ("/api/enroll/{course}", "POST", None, 401),
    ("/api/progress", "GET", "learner", 200),
    ("/api/progress", "GET", "creator", 403),
    ("/api/certificates", "GET", "learner", 200),
    ("/api/certificates", "GET", "admin", 403),
    ("/api/certificate/{course}", "POST", "creator", 403),
    # admin moderation
    ("/api/admin/courses", "GET", "admin", 200),
    ("/api/admin/courses", "GET", "creator", 403),
    ("/api/admin/courses", "GET", "learner", 403),
    ("/api/admin/courses", "GET", None, 401),
    ("/api/admin/creator-applications", "GET", "admin", 200),
    ("/api/admin/creator-applications", "GET", "pending", 403),
    # identity
    ("/api/auth/me", "GET", "learner", 200),
    ("/api/auth/me", "GET", "pending", 200),
    ("/api/auth/me", "GET", None, 401),
]


@pytest.mark.parametrize(
    "endpoint,method,caller,expected",
    _RBAC_CASES,
    ids=[f"{m} {e} {c or 'anon'}" for e, m, c, _ in _RBAC_CASES],
)
def test_rbac(
    client: TestClient, endpoint: str, method: str, caller: str | None, expected: int
) -> None:
    course = create_course(create_user("creator", approved=True), status="published")
    user = _CALLERS[caller]()
    url = endpoint.replace("{course}", str(course.id))

    if method == "GET":
        resp = client.get(url, headers=headers(user))
    else:
        resp = client.post(url, json=_COURSE_BODY, headers=headers(user))

    assert resp.status_code == expected, resp.text


def test_unapproved_creator_gets_specific_code(client: TestClient) -> None:
    resp = client.post("/api/courses", json=_COURSE_BODY, headers=headers(create_user("creator")))
    assert resp.json()["error"] == {
        "code": "CREATOR_NOT_APPROVED",
        "message": "Creator account not approved yet",
    }


def test_wrong_role_message_names_the_role(client: TestClient) -> None:
    resp = client.get("/api/admin/courses", headers=headers(create_user("learner")))
    assert resp.json()["error"]["message"] == (
        "User role learner is not authorized to access this route"
    )


def test_anonymous_error_shape(client: TestClient) -> None:
    resp = client.get("/api/progress")
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"
