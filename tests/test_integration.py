import pytest
from datetime import date
from unittest.mock import Mock
from flask import Flask
from config import Config
from controllers import quiz_controller
from controllers.quiz_controller import quiz_bp
from services.exceptions import QuestionSourceUnavailable
from services.question_source import QuestionSource
from services.quiz_engine import QuizEngine
from services.session_manager import SessionManager

TODAY = date(2024, 3, 15)


@pytest.fixture
def question_source(make_questions):
    source = Mock(spec=QuestionSource)
    source.fetch.return_value = make_questions(4)
    return source


@pytest.fixture
def quiz_engine(question_source, monkeypatch):
    engine = QuizEngine(
        session_manager=SessionManager(),
        question_source=question_source,
        today=lambda: TODAY,
    )
    monkeypatch.setattr(quiz_controller, "_quiz_engine", engine)
    return engine


@pytest.fixture
def flask_app(quiz_engine, tmp_path, monkeypatch):
    monkeypatch.setattr(Config, "GUEST_PROFILE_DIR", str(tmp_path / "guests"))
    monkeypatch.setattr(Config, "DATABASE_URL", f"sqlite:///{tmp_path / 'scholars.db'}")

    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret-key"
    app.config["WTF_CSRF_ENABLED"] = False
    app.register_blueprint(quiz_bp)
    return app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


def answer_questions(client, answers):
    """Answer the current pass; ``True`` picks the right option."""
    for right in answers:
        view = client.get("/quiz").get_json()
        question_number = int(view["question"].split()[-1].rstrip("?"))
        correct = question_number % 4
        response = client.post(
            "/quiz/answer", json={"option": correct if right else (correct + 1) % 4}
        )
        assert response.status_code == 200
        response = client.post("/quiz/next")
    return response


class TestIndex:

    def test_lists_subjects_and_grades(self, client):
        data = client.get("/").get_json()

        assert data["subjects"] == ["English", "Math", "Science", "Chinese"]
        assert data["grades"] == ["Primary 3", "Primary 4"]
        assert "csrf_token" in data


class TestProfileEndpoints:

    def test_create_and_show_profile(self, client):
        response = client.post("/profile", json={"name": "Mei", "grade": "Primary 4"})
        assert response.status_code == 201
        assert response.get_json()["name"] == "Mei"

        data = client.get("/profile").get_json()
        assert data["profile"]["grade"] == "Primary 4"
        assert data["streak"] == 0
        assert data["recent_results"] == []

    def test_profile_requires_name(self, client):
        response = client.post("/profile", json={"grade": "Primary 3"})
        assert response.status_code == 400

    def test_profile_rejects_unknown_grade(self, client):
        response = client.post("/profile", json={"name": "Mei", "grade": "Primary 9"})
        assert response.status_code == 400

    def test_show_missing_profile(self, client):
        assert client.get("/profile").status_code == 404


class TestGuestQuizFlow:

    def test_complete_quiz_with_retry(self, client):
        response = client.post("/quiz/start", json={"subject": "Math"})
        assert response.status_code == 200
        assert response.get_json()["result"] == "started"

        response = answer_questions(client, [True, False, True, False])
        summary = response.get_json()
        assert summary["result"] == "quiz_completed"
        assert summary["initial_score"] == 20
        assert summary["has_mistakes"] is True

        response = client.post("/quiz/retry")
        assert response.get_json() == {"result": "retry_started", "total_questions": 2}

        response = answer_questions(client, [True, True])
        assert response.get_json()["score"] == 20

        response = client.post("/quiz/finish")
        data = response.get_json()
        assert response.status_code == 200
        assert data["final_score"] == 20
        assert data["total_questions"] == 4
        assert data["total_points"] == 20
        assert data["streak"] == 1

        assert client.get("/quiz").status_code == 404

        progress = client.get("/profile").get_json()
        assert progress["profile"]["name"] == "Guest Scholar"
        assert progress["profile"]["completed_dates"] == ["2024-03-15"]
        assert progress["recent_results"][0]["score"] == 20

    def test_answer_reveals_explanation(self, client):
        client.post("/quiz/start", json={"subject": "Science"})

        data = client.post("/quiz/answer", json={"option": 0}).get_json()

        assert data["result"] == "answered"
        assert data["evaluation"] == {"correct": True, "points_awarded": 10}
        assert data["explanation"]

    def test_second_answer_is_conflict(self, client):
        client.post("/quiz/start", json={"subject": "Math"})
        client.post("/quiz/answer", json={"option": 1})

        response = client.post("/quiz/answer", json={"option": 0})

        assert response.status_code == 409
        assert response.get_json()["result"] == "already_answered"
        assert client.get("/quiz").get_json()["score"] == 0

    def test_advance_without_answer_is_conflict(self, client):
        client.post("/quiz/start", json={"subject": "Math"})

        response = client.post("/quiz/next")

        assert response.status_code == 409
        assert response.get_json()["action"] == "advance"

    def test_invalid_option(self, client):
        client.post("/quiz/start", json={"subject": "Math"})

        assert client.post("/quiz/answer", json={"option": 4}).status_code == 400
        assert client.post("/quiz/answer", json={"option": "first"}).status_code == 400

    def test_back_navigation(self, client):
        client.post("/quiz/start", json={"subject": "Math"})
        client.post("/quiz/answer", json={"option": 2})
        client.post("/quiz/next")

        response = client.post("/quiz/back")

        assert response.get_json() == {"result": "previous_question", "current_index": 0}
        assert client.get("/quiz").get_json()["selected_option"] == 2

    def test_abandon_saves_nothing(self, client):
        client.post("/quiz/start", json={"subject": "Math"})
        answer_questions(client, [True] * 4)

        assert client.post("/quiz/abandon").get_json() == {"result": "abandoned"}
        assert client.post("/quiz/abandon").get_json() == {"result": "no_active_quiz"}
        assert client.get("/profile").get_json()["profile"]["total_points"] == 0

    def test_actions_without_quiz(self, client):
        assert client.post("/quiz/next").status_code == 404
        assert client.post("/quiz/finish").status_code == 404

    def test_unknown_subject(self, client):
        response = client.post("/quiz/start", json={"subject": "History"})
        assert response.status_code == 400

    def test_unavailable_questions(self, client, question_source):
        question_source.fetch.side_effect = QuestionSourceUnavailable("offline")

        data = client.post("/quiz/start", json={"subject": "English"}).get_json()

        assert data["result"] == "unavailable"
        assert client.get("/quiz").status_code == 404

    def test_misconfigured_source_is_service_unavailable(self, client, monkeypatch):
        monkeypatch.setattr(quiz_controller, "_quiz_engine", None)
        monkeypatch.setattr(Config, "QUESTION_SOURCE", "carrier-pigeon")

        response = client.post("/quiz/start", json={"subject": "Math"})
        assert response.status_code == 503
        assert "not configured" in response.get_json()["error"]

        assert client.post("/quiz/next").status_code == 503
        assert client.get("/quiz").status_code == 503


class TestSignedInFlow:

    def sign_in(self, client, user_id):
        with client.session_transaction() as sess:
            sess["user_id"] = user_id
            sess["guest"] = False

    def test_signed_in_user_needs_profile(self, client):
        self.sign_in(client, "signed_in_1")

        response = client.post("/quiz/start", json={"subject": "Math"})

        assert response.status_code == 404

    def test_signed_in_results_reach_leaderboard(self, client):
        self.sign_in(client, "signed_in_2")
        client.post("/profile", json={"name": "Wei", "grade": "Primary 3"})

        client.post("/quiz/start", json={"subject": "Math"})
        answer_questions(client, [True, True, True, False])
        data = client.post("/quiz/finish").get_json()
        assert data["final_score"] == 30

        board = client.get("/leaderboard").get_json()["leaderboard"]
        assert board[0]["name"] == "Wei"
        assert board[0]["total_points"] == 30
        assert board[0]["rank"] == 1
