import pytest

from classes.quiz_manager import QuizManager
from conftest import auth_headers, make_user
from models import db
from models.quiz_submissions import QuizSubmission
from utils.errors import InvalidState, ValidationFailed
from utils.helpers import round_half_up_percent

OPTIONS = ["A", "B", "C", "D"]


@pytest.fixture()
def quiz_task(make_task, learner):
    return make_task(
        assignees=[learner],
        enable_quiz=True,
        passing_score=75,
        questions=[(OPTIONS, 0), (OPTIONS, 1), (OPTIONS, 2), (OPTIONS, 3)],
    )


def _answers(task, selections):
    return [
        {"questionId": question.id, "selectedIndex": index}
        for question, index in zip(task.questions, selections)
    ]


def test_three_of_four_correct_passes_at_seventy_five(client, quiz_task, learner):
    response = client.post("/api/quiz/submit", json={
        "taskId": quiz_task.id, "answers": _answers(quiz_task, [0, 1, 2, 0]),
    }, headers=auth_headers(learner))

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["score"] == 75
    assert data["passed"] is True
    assert data["correctAnswers"] == 3
    assert data["totalQuestions"] == 4
    assert data["attempt"] == 1


def test_unanswered_questions_count_as_wrong(client, quiz_task, learner):
    response = client.post("/api/quiz/submit", json={
        "taskId": quiz_task.id, "answers": _answers(quiz_task, [0, 1]),
    }, headers=auth_headers(learner))

    data = response.get_json()["data"]
    assert data["score"] == 50
    assert data["passed"] is False


def test_each_submission_is_a_new_attempt(client, quiz_task, learner):
    headers = auth_headers(learner)
    for _ in range(3):
        response = client.post("/api/quiz/submit", json={
            "taskId": quiz_task.id, "answers": _answers(quiz_task, [3, 3, 3, 3]),
        }, headers=headers)

    assert response.get_json()["data"]["attempt"] == 3
    assert QuizSubmission.query.filter_by(user_id=learner.id).count() == 3

    latest = client.get(f"/api/quiz/{quiz_task.id}/result", headers=headers).get_json()["data"]
    assert latest["attempt"] == 3
    assert latest["score"] == 25


def test_pass_mark_is_frozen_at_submission(app, quiz_task, learner):
    answers = [(question.id, question.correct_answer) for question in quiz_task.questions[:3]]
    QuizManager.submit(quiz_task.id, learner.id, answers)

    quiz_task.passing_score = 100
    db.session.commit()

    stored = QuizManager.latest(quiz_task.id, learner.id)
    assert stored.passed is True
    assert stored.passing_score == 75


def test_unknown_question_is_rejected(app, quiz_task, learner):
    with pytest.raises(ValidationFailed):
        QuizManager.submit(quiz_task.id, learner.id, [("not-a-question", 0)])


def test_duplicate_answers_are_rejected(app, quiz_task, learner):
    question_id = quiz_task.questions[0].id
    with pytest.raises(ValidationFailed):
        QuizManager.submit(quiz_task.id, learner.id, [(question_id, 0), (question_id, 1)])


def test_quiz_on_unpublished_task_is_rejected(app, make_task, learner):
    task = make_task(status="draft", enable_quiz=True, questions=[(OPTIONS, 0)])

    with pytest.raises(InvalidState):
        QuizManager.submit(task.id, learner.id, [(task.questions[0].id, 0)])


def test_unassigned_learner_cannot_submit_quiz(client, quiz_task):
    outsider = make_user("outsider")

    response = client.post("/api/quiz/submit", json={
        "taskId": quiz_task.id, "answers": _answers(quiz_task, [0, 1, 2, 3]),
    }, headers=auth_headers(outsider))

    assert response.status_code == 403
    assert QuizSubmission.query.filter_by(user_id=outsider.id).count() == 0


def test_task_without_quiz_rejects_submission(client, make_task, learner):
    task = make_task(assignees=[learner], questions=[(OPTIONS, 0)])

    response = client.post("/api/quiz/submit", json={
        "taskId": task.id, "answers": _answers(task, [0]),
    }, headers=auth_headers(learner))

    assert response.status_code == 400


def test_result_without_submission_is_not_found(client, quiz_task, learner):
    response = client.get(f"/api/quiz/{quiz_task.id}/result", headers=auth_headers(learner))

    assert response.status_code == 404


def test_learners_do_not_see_correct_answers(client, quiz_task, learner, admin):
    as_learner = client.get(f"/api/tasks/{quiz_task.id}/quiz", headers=auth_headers(learner))
    as_admin = client.get(f"/api/tasks/{quiz_task.id}/quiz", headers=auth_headers(admin))

    assert all("correct_answer" not in q for q in as_learner.get_json()["data"])
    assert [q["correct_answer"] for q in as_admin.get_json()["data"]] == [0, 1, 2, 3]


@pytest.mark.parametrize("correct,total,expected", [
    (3, 4, 75),
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),
    (0, 5, 0),
    (5, 5, 100),
])
def test_score_rounds_half_up(correct, total, expected):
    assert round_half_up_percent(correct, total) == expected
