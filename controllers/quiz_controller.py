import logging
import uuid
from typing import Any, Dict

from flask import Blueprint, jsonify, request, session
from flask_wtf.csrf import generate_csrf
from pydantic import BaseModel

from config import Config
from models.subject import Grade, Subject
from services.exceptions import QuestionSourceUnavailable, QuizError
from services.profile_store import create_profile_store
from services.question_source import create_question_source
from services.quiz_engine import QuizEngine
from services.session_manager import SessionManager

logger = logging.getLogger(__name__)

quiz_bp = Blueprint("quiz", __name__)

_quiz_engine = None

STATUS_BY_RESULT = {
    "invalid_option": 400,
    "invalid_transition": 409,
    "already_answered": 409,
    "daily_limit_reached": 429,
    "persistence_failed": 503,
}


def get_quiz_engine() -> QuizEngine:
    global _quiz_engine

    if _quiz_engine is None:
        try:
            question_source = create_question_source(Config)
        except ValueError as e:
            logger.error("Question source is misconfigured: %s", e)
            raise QuestionSourceUnavailable(f"Questions are not configured: {e}")

        _quiz_engine = QuizEngine(
            session_manager=SessionManager(session_timeout_seconds=Config.SESSION_TIMEOUT),
            question_source=question_source,
            daily_game_limit=Config.DAILY_GAME_LIMIT,
        )

    return _quiz_engine


def get_user_id() -> str:
    # Signed-in users arrive with user_id and guest=False set by the sign-in flow.
    if "user_id" not in session:
        session["user_id"] = str(uuid.uuid4())
        session["guest"] = True
    return session["user_id"]


def get_profile_store():
    return create_profile_store(session.get("guest", True), Config)


def to_json(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {key: to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    return value


def respond(result: Dict[str, Any]):
    status = STATUS_BY_RESULT.get(result.get("result"), 200)
    return jsonify(to_json(result)), status


def error(message: str, status: int):
    return jsonify({"error": message}), status


def request_data() -> Dict[str, Any]:
    return request.get_json(silent=True) or request.form.to_dict()


@quiz_bp.errorhandler(QuizError)
def quiz_error(e):
    logger.warning("Quiz service unavailable: %s", e)
    return error(str(e), 503)


@quiz_bp.route("/", methods=["GET"])
def index():
    return jsonify(
        {
            "subjects": [subject.value for subject in Subject],
            "grades": [grade.value for grade in Grade],
            "csrf_token": generate_csrf(),
        }
    )


@quiz_bp.route("/profile", methods=["POST"])
def create_profile():
    user_id = get_user_id()
    data = request_data()

    name = (data.get("name") or "").strip()
    if not name:
        return error("Please provide a name", 400)

    try:
        grade = Grade(data.get("grade"))
    except ValueError:
        return error(f"Unknown grade: {data.get('grade')}", 400)

    profile = get_profile_store().create_profile(
        user_id, name, grade, avatar=data.get("avatar")
    )
    return jsonify(to_json(profile)), 201


@quiz_bp.route("/profile", methods=["GET"])
def show_profile():
    user_id = get_user_id()
    progress = get_quiz_engine().get_progress(user_id, get_profile_store())
    if progress is None:
        return error("No profile yet. Please create one first.", 404)
    return jsonify(to_json(progress))


@quiz_bp.route("/leaderboard", methods=["GET"])
def leaderboard():
    limit = request.args.get("limit", default=10, type=int)
    entries = get_profile_store().leaderboard(limit=max(1, min(limit, 100)))
    return jsonify(to_json({"leaderboard": entries}))


@quiz_bp.route("/quiz/start", methods=["POST"])
def start_quiz():
    user_id = get_user_id()
    data = request_data()

    try:
        subject = Subject(data.get("subject"))
    except ValueError:
        return error(f"Unknown subject: {data.get('subject')}", 400)

    store = get_profile_store()
    if session.get("guest", True):
        profile = store.ensure_profile(user_id)
    else:
        profile = store.get_profile(user_id)
        if profile is None:
            return error("No profile yet. Please create one first.", 404)

    result = get_quiz_engine().start_quiz(user_id, subject, profile.grade, store)
    return respond(result)


@quiz_bp.route("/quiz", methods=["GET"])
def show_quiz():
    view = get_quiz_engine().get_current_view(get_user_id())
    if view is None:
        return error("No active quiz. Please start one first.", 404)
    return jsonify(to_json(view))


@quiz_bp.route("/quiz/answer", methods=["POST"])
def answer():
    user_id = get_user_id()
    data = request_data()

    try:
        option = int(data.get("option"))
    except (TypeError, ValueError):
        return error("Please select an option", 400)

    return _run(lambda engine: engine.select_option(user_id, option))


@quiz_bp.route("/quiz/next", methods=["POST"])
def next_question():
    user_id = get_user_id()
    return _run(lambda engine: engine.advance(user_id))


@quiz_bp.route("/quiz/back", methods=["POST"])
def previous_question():
    user_id = get_user_id()
    return _run(lambda engine: engine.go_back(user_id))


@quiz_bp.route("/quiz/retry", methods=["POST"])
def retry_mistakes():
    user_id = get_user_id()
    return _run(lambda engine: engine.retry_mistakes(user_id))


@quiz_bp.route("/quiz/finish", methods=["POST"])
def finish_quiz():
    user_id = get_user_id()
    return _run(lambda engine: engine.finish_quiz(user_id))


@quiz_bp.route("/quiz/abandon", methods=["POST"])
def abandon_quiz():
    discarded = get_quiz_engine().abandon_quiz(get_user_id())
    return jsonify({"result": "abandoned" if discarded else "no_active_quiz"})


def _run(action):
    try:
        return respond(action(get_quiz_engine()))
    except ValueError as e:
        return error(str(e), 404)
