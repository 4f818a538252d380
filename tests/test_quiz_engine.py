import pytest
from datetime import date
from threading import Thread
from time import sleep
from unittest.mock import Mock
from models.subject import Grade, Subject
from services.exceptions import PersistenceFailure, QuestionSourceUnavailable
from services.local_profile_store import LocalProfileStore
from services.profile_store import ProfileStore
from services.question_source import QuestionSource
from services.quiz_engine import QuizEngine
from services.session_manager import SessionManager

TODAY = date(2024, 3, 15)
USER = "learner_1"


def play_through(engine, user_id, answers):
    for right in answers:
        view = engine.get_current_view(user_id)
        quiz = engine.session_manager.get_session(user_id)
        correct = quiz.controller.state.progress.current_question.correct_answer_index
        engine.select_option(user_id, correct if right else (correct + 1) % 4)
        result = engine.advance(user_id)
        assert view["phase"] == "playing"
    return result


@pytest.fixture
def session_manager():
    return SessionManager()


@pytest.fixture
def question_source(make_questions):
    source = Mock(spec=QuestionSource)
    source.fetch.return_value = make_questions(4)
    return source


@pytest.fixture
def store(tmp_path):
    store = LocalProfileStore(str(tmp_path))
    store.create_profile(USER, "Mei", Grade.PRIMARY_3)
    return store


@pytest.fixture
def engine(session_manager, question_source):
    return QuizEngine(
        session_manager=session_manager,
        question_source=question_source,
        today=lambda: TODAY,
    )


class TestStartQuiz:

    def test_start_quiz_creates_session(self, engine, session_manager, store, question_source):
        result = engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)

        assert result["result"] == "started"
        assert result["total_questions"] == 4
        assert result["view"]["current_index"] == 0
        question_source.fetch.assert_called_once_with(Subject.MATH, Grade.PRIMARY_3)

        quiz = session_manager.get_session(USER)
        assert quiz.subject == Subject.MATH
        assert quiz.profile_store is store

    def test_start_quiz_replaces_existing_quiz(self, engine, store):
        engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)
        engine.select_option(USER, 0)

        engine.start_quiz(USER, Subject.SCIENCE, Grade.PRIMARY_3, store)

        view = engine.get_current_view(USER)
        assert view["subject"] == "Science"
        assert view["answered"] is False
        assert view["score"] == 0

    def test_start_quiz_discards_idle_quizzes(self, question_source, store):
        session_manager = SessionManager(session_timeout_seconds=0)
        engine = QuizEngine(session_manager, question_source, today=lambda: TODAY)
        engine.start_quiz("idle_user", Subject.MATH, Grade.PRIMARY_3, store)
        sleep(0.01)

        engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)

        assert session_manager.active_count() == 1

    def test_unavailable_source_starts_nothing(self, engine, session_manager, store, question_source):
        question_source.fetch.side_effect = QuestionSourceUnavailable("offline")

        result = engine.start_quiz(USER, Subject.ENGLISH, Grade.PRIMARY_3, store)

        assert result["result"] == "unavailable"
        assert session_manager.get_session(USER) is None

    def test_empty_source_starts_nothing(self, engine, session_manager, store, question_source):
        question_source.fetch.return_value = []

        result = engine.start_quiz(USER, Subject.ENGLISH, Grade.PRIMARY_3, store)

        assert result["result"] == "unavailable"
        assert engine.get_current_view(USER) is None


class TestDailyLimit:

    @pytest.fixture
    def limited_engine(self, session_manager, question_source):
        return QuizEngine(
            session_manager=session_manager,
            question_source=question_source,
            daily_game_limit=1,
            today=lambda: TODAY,
        )

    def test_limit_reached_after_finished_games(self, limited_engine, store):
        store.persist(USER, Subject.MATH, Grade.PRIMARY_3, 20, 4, "2024-03-15")

        result = limited_engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)

        assert result["result"] == "daily_limit_reached"
        assert limited_engine.get_current_view(USER) is None

    def test_limit_is_per_subject_and_day(self, limited_engine, store):
        store.persist(USER, Subject.MATH, Grade.PRIMARY_3, 20, 4, "2024-03-14")
        store.persist(USER, Subject.SCIENCE, Grade.PRIMARY_3, 20, 4, "2024-03-15")

        result = limited_engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)

        assert result["result"] == "started"

    def test_unreadable_store_does_not_block(self, limited_engine):
        store = Mock(spec=ProfileStore)
        store.games_played_today.side_effect = PersistenceFailure("down")

        result = limited_engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)

        assert result["result"] == "started"


class TestPlaying:

    def test_actions_without_quiz_raise(self, engine):
        for action in (engine.advance, engine.go_back, engine.retry_mistakes, engine.finish_quiz):
            with pytest.raises(ValueError, match="No active quiz"):
                action("nobody")
        with pytest.raises(ValueError, match="No active quiz"):
            engine.select_option("nobody", 0)

    def test_view_includes_subject_and_grade(self, engine, store):
        engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)

        view = engine.get_current_view(USER)

        assert view["subject"] == "Math"
        assert view["grade"] == "Primary 3"
        assert view["phase"] == "playing"

    def test_go_back_and_retry(self, engine, store):
        engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)
        engine.select_option(USER, 1)
        engine.advance(USER)

        assert engine.go_back(USER)["result"] == "previous_question"
        assert engine.get_current_view(USER)["selected_option"] == 1
        engine.advance(USER)

        result = play_through(engine, USER, [True, True, True])
        assert result["result"] == "quiz_completed"
        assert result["has_mistakes"] is True
        assert engine.retry_mistakes(USER)["total_questions"] == 1


class TestFinishQuiz:

    def test_finish_persists_primary_score(self, engine, session_manager, store, question_source, make_questions):
        question_source.fetch.return_value = make_questions(10)
        store.append_completed_date(USER, "2024-03-14")
        engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)

        play_through(engine, USER, [True, False] * 5)
        engine.retry_mistakes(USER)
        play_through(engine, USER, [True] * 5)

        result = engine.finish_quiz(USER)

        assert result["result"] == "finished"
        assert result["final_score"] == 50
        assert result["total_questions"] == 10
        assert result["total_points"] == 50
        assert result["streak"] == 2
        assert session_manager.get_session(USER) is None

        profile = store.get_profile(USER)
        assert profile.total_points == 50
        assert profile.games_played == 1
        assert "2024-03-15" in profile.completed_dates

    def test_finish_before_result_is_rejected(self, engine, store):
        engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)

        result = engine.finish_quiz(USER)

        assert result["result"] == "invalid_transition"
        assert store.get_profile(USER).games_played == 0

    def test_persistence_failure_keeps_result(self, engine, session_manager):
        store = Mock(spec=ProfileStore)
        store.games_played_today.return_value = 0
        store.persist.side_effect = PersistenceFailure("disk full")
        engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)
        play_through(engine, USER, [True] * 4)

        result = engine.finish_quiz(USER)

        assert result["result"] == "persistence_failed"
        assert engine.get_current_view(USER)["phase"] == "result"

        store.persist.side_effect = None
        store.get_profile.return_value = None
        assert engine.finish_quiz(USER)["result"] == "finished"
        assert store.persist.call_count == 2
        assert session_manager.get_session(USER) is None

    def test_concurrent_finishes_save_once(self, engine, session_manager):
        store = Mock(spec=ProfileStore)
        store.get_profile.return_value = None
        store.persist.side_effect = lambda *args: sleep(0.2)
        engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)
        play_through(engine, USER, [True] * 4)
        results = []

        def finisher():
            try:
                results.append(engine.finish_quiz(USER)["result"])
            except ValueError:
                results.append("no_active_quiz")

        threads = [Thread(target=finisher) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.persist.call_count == 1
        assert results.count("finished") == 1
        assert len(results) == 2
        assert session_manager.get_session(USER) is None

    def test_persist_receives_quiz_details(self, engine):
        store = Mock(spec=ProfileStore)
        store.get_profile.return_value = None
        engine.start_quiz(USER, Subject.SCIENCE, Grade.PRIMARY_4, store)
        play_through(engine, USER, [True, True, False, True])

        engine.finish_quiz(USER)

        store.persist.assert_called_once_with(
            USER, Subject.SCIENCE, Grade.PRIMARY_4, 30, 4, "2024-03-15"
        )


class TestAbandonQuiz:

    def test_abandon_discards_without_saving(self, engine, store):
        engine.start_quiz(USER, Subject.MATH, Grade.PRIMARY_3, store)
        play_through(engine, USER, [True] * 4)

        assert engine.abandon_quiz(USER) is True
        assert engine.get_current_view(USER) is None

        profile = store.get_profile(USER)
        assert profile.total_points == 0
        assert profile.completed_dates == []

    def test_abandon_without_quiz(self, engine):
        assert engine.abandon_quiz(USER) is False


class TestGetProgress:

    def test_progress_summarizes_profile(self, engine, store):
        for day in ("2024-03-10", "2024-03-11", "2024-03-12", "2024-03-14", "2024-03-15"):
            store.persist(USER, Subject.MATH, Grade.PRIMARY_3, 10, 4, day)

        progress = engine.get_progress(USER, store)

        assert progress["profile"].total_points == 50
        assert progress["streak"] == 2
        assert progress["longest_streak"] == 3
        assert progress["days_active"] == 5
        assert len(progress["recent_results"]) == 5

    def test_progress_without_profile(self, engine, store):
        assert engine.get_progress("nobody", store) is None
