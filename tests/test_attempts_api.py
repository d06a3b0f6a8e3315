import pytest

from conftest import as_user

STUDENT = 31
OTHER_STUDENT = 32
TEACHER = 2
ADMIN = 1


def quiz_payload(**overrides):
    payload = {
        "title": "Photosynthesis",
        "description": "Unit 3 quiz",
        "time_limit_minutes": 30,
        "passing_score_percent": 60,
        "questions": [
            {
                "text": "Where does photosynthesis happen?",
                "points": 1,
                "options": [
                    {"text": "Chloroplast", "is_correct": True},
                    {"text": "Nucleus"},
                    {"text": "Ribosome"},
                ],
            },
            {
                "text": "Which gas is absorbed?",
                "points": 2,
                "options": [
                    {"text": "Oxygen"},
                    {"text": "Carbon dioxide", "is_correct": True},
                    {"text": "Nitrogen"},
                ],
            },
            {
                "text": "What is produced besides oxygen?",
                "points": 3,
                "options": [
                    {"text": "Protein"},
                    {"text": "Starch"},
                    {"text": "Glucose", "is_correct": True},
                ],
            },
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def quiz(client):
    response = client.post("/api/quizzes/", json=quiz_payload(), headers=as_user(TEACHER, "teacher"))
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def qids(quiz):
    return [str(question["id"]) for question in quiz["questions"]]


def start(client, quiz_id, student=STUDENT):
    return client.post("/api/quiz-attempts", json={"quiz_id": quiz_id}, headers=as_user(student))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_quiz_options_get_positional_ids(quiz):
    options = quiz["questions"][1]["options"]
    assert [option["id"] for option in options] == [1, 2, 3]
    assert [option["is_correct"] for option in options] == [False, True, False]


def test_quiz_authoring_requires_exactly_one_correct_option(client):
    payload = quiz_payload()
    payload["questions"][0]["options"][1]["is_correct"] = True

    response = client.post("/api/quizzes/", json=payload, headers=as_user(TEACHER, "teacher"))

    assert response.status_code == 422


def test_students_cannot_author_quizzes(client):
    response = client.post("/api/quizzes/", json=quiz_payload(), headers=as_user(STUDENT))
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_students_see_quiz_without_correct_markers(client, quiz):
    response = client.get(f"/api/quizzes/{quiz['id']}", headers=as_user(STUDENT))

    assert response.status_code == 200
    body = response.json()
    assert body["total_points"] == 6
    assert all("is_correct" not in option for q in body["questions"] for option in q["options"])


def test_unknown_quiz_is_404(client):
    response = client.get("/api/quizzes/404", headers=as_user(TEACHER, "teacher"))
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_missing_identity_is_401(client, quiz):
    response = client.post("/api/quiz-attempts", json={"quiz_id": quiz["id"]})
    assert response.status_code == 401
    assert response.json()["error"] == "not_authenticated"


def test_only_students_start_attempts(client, quiz):
    response = client.post(
        "/api/quiz-attempts", json={"quiz_id": quiz["id"]}, headers=as_user(TEACHER, "teacher")
    )
    assert response.status_code == 403


def test_start_then_resume(client, quiz):
    first = start(client, quiz["id"])
    assert first.status_code == 201
    body = first.json()
    assert body["resumed"] is False
    assert body["status"] == "in_progress"
    assert body["deadline"] is not None
    assert 0 < body["remaining_seconds"] <= 30 * 60

    second = start(client, quiz["id"])
    assert second.status_code == 200
    assert second.json()["id"] == body["id"]
    assert second.json()["resumed"] is True
    assert second.json()["started_at"] == body["started_at"]


def test_start_unknown_quiz(client):
    response = start(client, 9999)
    assert response.status_code == 404


def test_full_attempt_flow(client, quiz, qids):
    q1, q2, q3 = qids
    attempt_id = start(client, quiz["id"]).json()["id"]

    saved = client.patch(
        f"/api/quiz-attempts/{attempt_id}/save-progress",
        json={"answers": {q1: "1"}},
        headers=as_user(STUDENT),
    )
    assert saved.status_code == 200
    assert saved.json()["message"] == "Progress saved successfully"
    assert saved.json()["result"] is None

    saved = client.patch(
        f"/api/quiz-attempts/{attempt_id}/save-progress",
        json={"answers": {q2: {"selectedOptionId": 3}}},
        headers=as_user(STUDENT),
    )
    assert saved.json()["attempt"]["answers"] == {
        q1: {"selectedOptionId": "1"},
        q2: {"selectedOptionId": "3"},
    }

    submitted = client.post(
        f"/api/quiz-attempts/{attempt_id}/submit",
        json={"answers": {q3: "3"}},
        headers=as_user(STUDENT),
    )
    assert submitted.status_code == 200
    result = submitted.json()
    assert result["score"] == 4
    assert result["total_possible_score"] == 6
    assert result["percentage"] == pytest.approx(66.67)
    assert result["is_passing"] is True
    assert result["auto_submitted"] is False
    assert [item["points_awarded"] for item in result["breakdown"]] == [1, 0, 3]

    again = client.post(
        f"/api/quiz-attempts/{attempt_id}/submit",
        json={"answers": {q2: "2"}},
        headers=as_user(STUDENT),
    )
    assert again.status_code == 409
    assert again.json()["error"] == "already_completed"
    assert again.json()["attempt_id"] == attempt_id

    late_save = client.patch(
        f"/api/quiz-attempts/{attempt_id}/save-progress",
        json={"answers": {q2: "2"}},
        headers=as_user(STUDENT),
    )
    assert late_save.status_code == 409

    restart = start(client, quiz["id"])
    assert restart.status_code == 409
    assert restart.json()["attempt_id"] == attempt_id

    fetched = client.get(f"/api/quiz-attempts/{attempt_id}", headers=as_user(STUDENT)).json()
    assert fetched["status"] == "completed"
    assert fetched["score"] == 4
    assert fetched["remaining_seconds"] == 0


def test_auto_submit_flag_finalizes_with_buffered_answers(client, quiz, qids):
    q1, q2, _ = qids
    attempt_id = start(client, quiz["id"]).json()["id"]

    response = client.patch(
        f"/api/quiz-attempts/{attempt_id}/save-progress",
        json={"answers": {q1: "1", q2: "2"}, "autoSubmit": True},
        headers=as_user(STUDENT),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Quiz auto-submitted successfully"
    assert body["attempt"]["status"] == "completed"
    assert body["result"]["score"] == 3
    assert body["result"]["auto_submitted"] is True


def test_attempt_belongs_to_its_student(client, quiz):
    attempt_id = start(client, quiz["id"]).json()["id"]

    submit = client.post(
        f"/api/quiz-attempts/{attempt_id}/submit", json={"answers": {}}, headers=as_user(OTHER_STUDENT)
    )
    assert submit.status_code == 403

    peek = client.get(f"/api/quiz-attempts/{attempt_id}", headers=as_user(OTHER_STUDENT))
    assert peek.status_code == 403

    teacher_view = client.get(f"/api/quiz-attempts/{attempt_id}", headers=as_user(TEACHER, "teacher"))
    assert teacher_view.status_code == 200


def test_submit_unknown_attempt(client):
    response = client.post("/api/quiz-attempts/777/submit", json={"answers": {}}, headers=as_user(STUDENT))
    assert response.status_code == 404


def test_list_attempts(client, quiz):
    attempt_id = start(client, quiz["id"]).json()["id"]
    start(client, quiz["id"], student=OTHER_STUDENT)

    own = client.get(f"/api/students/{STUDENT}/quiz-attempts", headers=as_user(STUDENT))
    assert own.status_code == 200
    assert [a["id"] for a in own.json()] == [attempt_id]

    filtered = client.get(
        f"/api/students/{STUDENT}/quiz-attempts", params={"quiz_id": 9999}, headers=as_user(STUDENT)
    )
    assert filtered.json() == []

    other = client.get(f"/api/students/{OTHER_STUDENT}/quiz-attempts", headers=as_user(STUDENT))
    assert other.status_code == 403

    teacher = client.get(f"/api/students/{OTHER_STUDENT}/quiz-attempts", headers=as_user(TEACHER, "teacher"))
    assert teacher.status_code == 200
    assert len(teacher.json()) == 1


def test_admin_reset_allows_a_fresh_attempt(client, quiz):
    attempt_id = start(client, quiz["id"]).json()["id"]
    client.post(f"/api/quiz-attempts/{attempt_id}/submit", json={"answers": {}}, headers=as_user(STUDENT))

    denied = client.delete(f"/api/students/{STUDENT}/quiz-attempts", headers=as_user(TEACHER, "teacher"))
    assert denied.status_code == 403

    reset = client.delete(
        f"/api/students/{STUDENT}/quiz-attempts",
        params={"quiz_id": quiz["id"]},
        headers=as_user(ADMIN, "admin"),
    )
    assert reset.status_code == 200
    assert [a["id"] for a in reset.json()["deleted_attempts"]] == [attempt_id]

    fresh = start(client, quiz["id"])
    assert fresh.status_code == 201
    assert fresh.json()["answers"] == {}


def test_attempt_detail_hides_answers_until_completed(client, quiz, qids):
    q1, q2, q3 = qids
    attempt_id = start(client, quiz["id"]).json()["id"]

    in_progress = client.get(f"/api/quiz-attempts/{attempt_id}", headers=as_user(STUDENT)).json()
    assert in_progress["result"] is None
    assert in_progress["quiz"]["id"] == quiz["id"]
    assert all(
        "is_correct" not in option
        for question in in_progress["quiz"]["questions"]
        for option in question["options"]
    )

    client.post(
        f"/api/quiz-attempts/{attempt_id}/submit",
        json={"answers": {q1: "1", q2: "1", q3: "3"}},
        headers=as_user(STUDENT),
    )

    completed = client.get(f"/api/quiz-attempts/{attempt_id}", headers=as_user(STUDENT)).json()
    result = completed["result"]
    assert completed["status"] == "completed"
    assert result["score"] == 4
    assert result["is_passing"] is True
    assert [item["correct_option_id"] for item in result["breakdown"]] == ["1", "2", "3"]
    assert [item["is_correct"] for item in result["breakdown"]] == [True, False, True]


def test_quizzes_with_status(client, quiz):
    draft = client.post(
        "/api/quizzes/", json=quiz_payload(title="Unfinished", status="draft"), headers=as_user(TEACHER, "teacher")
    ).json()
    second = client.post(
        "/api/quizzes/", json=quiz_payload(title="Respiration"), headers=as_user(TEACHER, "teacher")
    ).json()

    before = client.get(f"/api/students/{STUDENT}/quizzes-with-status", headers=as_user(STUDENT))
    assert before.status_code == 200
    assert [(q["quiz_id"], q["attempt_status"]) for q in before.json()] == [
        (quiz["id"], "not_attempted"),
        (second["id"], "not_attempted"),
    ]
    assert draft["id"] not in [q["quiz_id"] for q in before.json()]

    attempt_id = start(client, quiz["id"]).json()["id"]
    second_attempt = start(client, second["id"]).json()["id"]
    client.post(f"/api/quiz-attempts/{second_attempt}/submit", json={"answers": {}}, headers=as_user(STUDENT))

    after = client.get(f"/api/students/{STUDENT}/quizzes-with-status", headers=as_user(STUDENT)).json()
    assert [(q["attempt_status"], q["attempt_id"]) for q in after] == [
        ("in_progress", attempt_id),
        ("completed", second_attempt),
    ]
    assert after[1]["score"] == 0

    other = client.get(f"/api/students/{OTHER_STUDENT}/quizzes-with-status", headers=as_user(STUDENT))
    assert other.status_code == 403
