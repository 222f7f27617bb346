"""Tests for the quiz session state machine and its driver."""
import random
from typing import List

import pytest
from prometheus_client import REGISTRY

from wordquest.config import QuizSettings, ScoringSettings
from wordquest.models.event_models import (
    Advance,
    CancelTimer,
    EmitCue,
    RequestHint,
    ScheduleTimer,
    SessionFinished,
    Start,
    SubmitLetter,
    Tick,
    TimerKind,
)
from wordquest.models.quiz_models import (
    Cue,
    Phase,
    QuestionStatus,
    QuizMode,
    QuizState,
    ScoreTier,
    SessionConfig,
    SessionOutcome,
)
from wordquest.services.grading_engine import GradingEngine
from wordquest.services.hint_provider import HintProvider
from wordquest.services.mastery_tracker import MasteryTracker
from wordquest.services.question_generator import QuestionGenerator
from wordquest.services.quiz_session import QuizListener, QuizMachine, QuizSession
from wordquest.services.scheduler_service import ManualScheduler


class RecordingListener(QuizListener):
    """Collects everything the session reports."""

    def __init__(self):
        self.states: List[QuizState] = []
        self.cues: List[Cue] = []
        self.rejected = []
        self.resolved = []
        self.summaries = []

    def on_state_changed(self, state):
        self.states.append(state)

    def on_cue(self, cue):
        self.cues.append(cue)

    def on_letter_rejected(self, question, position):
        self.rejected.append((question.id, position))

    def on_question_resolved(self, question, record):
        self.resolved.append((question, record))

    def on_session_finished(self, summary):
        self.summaries.append(summary)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def build_session(scheduler, listener):
    """Factory for sessions over a given corpus with deterministic timers."""
    def build(corpus, seed=42):
        return QuizSession(
            QuestionGenerator(corpus, random.Random(seed)),
            grading=GradingEngine(ScoringSettings()),
            hints=HintProvider(ScoringSettings()),
            tracker=MasteryTracker(),
            scheduler=scheduler,
            listeners=[listener],
            quiz_settings=QuizSettings(),
        )
    return build


@pytest.fixture
def pizza_session(build_session, make_word):
    return build_session([make_word("1", "pizza")])


def answer(session: QuizSession) -> None:
    """Fill every masked position of the current question correctly."""
    question = session.state.current_question
    for position, letter in question.correct_letters.items():
        session.submit_letter(position, letter)


def wrong_vowel(letter: str) -> str:
    return "e" if letter.lower() != "e" else "o"


def test_wrong_then_right_vowel(pizza_session, listener):
    """One wrong vowel then the right one resolves with two attempts."""
    state = pizza_session.start(SessionConfig(mode=QuizMode.PRACTICE))
    assert state.phase is Phase.ACTIVE
    question = state.current_question
    position = question.masked_positions[0]
    correct = question.word.text[position]

    state = pizza_session.submit_letter(position, wrong_vowel(correct))
    assert state.phase is Phase.ACTIVE
    assert state.current_question.attempts == 1
    assert state.current_question.filled == {}
    assert listener.cues == [Cue.INCORRECT]
    assert listener.rejected == [(question.id, position)]

    state = pizza_session.submit_letter(position, correct)
    resolved = state.current_question
    assert state.phase is Phase.FEEDBACK
    assert resolved.status is QuestionStatus.CORRECT
    assert resolved.attempts == 2
    assert resolved.perfect is False
    assert resolved.score_tier is ScoreTier.HIGH
    assert listener.cues == [Cue.INCORRECT, Cue.CORRECT]


def test_timed_session_runs_out(build_session, corpus, scheduler, listener):
    """Sixty seconds without answers complete the session with nothing correct."""
    session = build_session(corpus)
    state = session.start(SessionConfig(mode=QuizMode.TIMED, time_limit_seconds=60))
    assert state.time_remaining == 60

    scheduler.advance(30_000)
    assert session.state.time_remaining == 30
    assert session.state.phase is Phase.ACTIVE

    scheduler.advance(30_000)
    state = session.state
    assert state.phase is Phase.COMPLETE
    assert state.time_remaining == 0
    assert state.counters.correct_answers == 0
    assert state.summary.accuracy == 0
    assert state.summary.outcome is SessionOutcome.TIMED_OUT
    assert listener.summaries == [state.summary]
    assert listener.cues == [Cue.COMPLETE]
    assert scheduler.pending == 0


def test_timed_out_question_gets_no_credit(build_session, make_word, scheduler):
    session = build_session([make_word("1", "pizza"), make_word("2", "apple")])
    state = session.start(SessionConfig(mode=QuizMode.TIMED, time_limit_seconds=5))
    question = state.current_question
    position = question.masked_positions[0]
    session.submit_letter(position, wrong_vowel(question.word.text[position]))

    scheduler.advance(5_000)
    state = session.state
    assert state.phase is Phase.COMPLETE
    assert state.counters.correct_answers == 0
    assert state.counters.total_attempts == 1
    assert state.counters.questions_attempted == 1
    assert state.counters.time_spent_ms == 5_000
    assert state.summary.accuracy == 0


def test_feedback_auto_advances(build_session, corpus, scheduler):
    """After a correct answer the next question comes up after the feedback delay."""
    session = build_session(corpus)
    session.start(SessionConfig(mode=QuizMode.CHALLENGE, count=3))
    answer(session)
    assert session.state.phase is Phase.FEEDBACK
    assert session.pending_timers == (TimerKind.ADVANCE,)

    scheduler.advance(1_999)
    assert session.state.phase is Phase.FEEDBACK
    scheduler.advance(1)
    assert session.state.phase is Phase.ACTIVE
    assert session.state.current_index == 1
    assert session.state.current_question.activated_at_ms == 2_000


def test_explicit_advance_cancels_timer(build_session, corpus, scheduler):
    session = build_session(corpus)
    session.start(SessionConfig(mode=QuizMode.PRACTICE, count=3))
    answer(session)
    session.advance()
    assert session.state.current_index == 1
    assert scheduler.pending == 0

    scheduler.advance(10_000)
    assert session.state.current_index == 1
    assert session.state.phase is Phase.ACTIVE


def test_hint_resolves_and_advances_after_longer_delay(build_session, corpus, scheduler, listener):
    session = build_session(corpus)
    session.start(SessionConfig(mode=QuizMode.PRACTICE, count=2))
    state = session.request_hint()
    question = state.current_question
    assert state.phase is Phase.FEEDBACK
    assert question.status is QuestionStatus.CORRECT_VIA_HINT
    assert question.points == 2
    assert state.counters.hints_used == 1
    assert Cue.CORRECT not in listener.cues

    _, record = listener.resolved[0]
    assert record.reason == "hint"

    scheduler.advance(2_000)
    assert session.state.phase is Phase.FEEDBACK
    scheduler.advance(1_000)
    assert session.state.phase is Phase.ACTIVE
    assert session.state.current_index == 1


def test_second_hint_is_ignored(pizza_session):
    pizza_session.start(SessionConfig())
    first = pizza_session.request_hint()
    assert pizza_session.request_hint() is first


def test_exit_during_feedback_suppresses_advance(build_session, corpus, scheduler, listener):
    """Leaving mid-feedback never fires the pending advance."""
    session = build_session(corpus)
    session.start(SessionConfig(mode=QuizMode.PRACTICE, count=3))
    answer(session)
    state = session.exit()
    assert state.phase is Phase.TERMINATED
    assert session.pending_timers == ()
    assert scheduler.pending == 0

    scheduler.advance(5_000)
    assert session.state.phase is Phase.TERMINATED
    assert session.state.current_index == 0
    assert listener.summaries == []


def test_countdown_pauses_during_feedback(build_session, corpus, scheduler):
    session = build_session(corpus)
    session.start(SessionConfig(mode=QuizMode.TIMED, time_limit_seconds=60, count=3))
    scheduler.advance(3_000)
    assert session.state.time_remaining == 57

    answer(session)
    assert TimerKind.COUNTDOWN not in session.pending_timers
    scheduler.advance(1_999)
    assert session.state.time_remaining == 57

    scheduler.advance(1)
    assert session.state.phase is Phase.ACTIVE
    assert TimerKind.COUNTDOWN in session.pending_timers
    scheduler.advance(1_000)
    assert session.state.time_remaining == 56


def test_stale_tick_is_ignored(corpus):
    """A tick delivered outside the active phase changes nothing."""
    machine = QuizMachine(GradingEngine(ScoringSettings()), HintProvider(ScoringSettings()), QuizSettings())
    questions = tuple(QuestionGenerator(corpus, random.Random(5)).generate(2, mode=QuizMode.TIMED))
    started = machine.transition(QuizState(), Start(SessionConfig(mode=QuizMode.TIMED), questions, 0)).state

    hinted = machine.transition(started, RequestHint(100)).state
    assert hinted.phase is Phase.FEEDBACK
    stale = machine.transition(hinted, Tick(1_000))
    assert stale.state is hinted
    assert stale.effects == ()


def test_wrong_flag_clears(pizza_session, scheduler):
    state = pizza_session.start(SessionConfig())
    position = state.current_question.masked_positions[0]
    state = pizza_session.submit_letter(position, wrong_vowel(state.current_question.word.text[position]))
    assert state.current_question.wrong_position == position
    assert TimerKind.WRONG_FLAG in pizza_session.pending_timers

    scheduler.advance(1_499)
    assert pizza_session.state.current_question.wrong_position == position
    scheduler.advance(1)
    assert pizza_session.state.current_question.wrong_position is None
    assert pizza_session.state.current_question.attempts == 1


def test_invalid_start_is_ignored(pizza_session, scheduler):
    assert pizza_session.start(SessionConfig(count=0)).phase is Phase.SETUP
    assert pizza_session.start({"mode": "sprint"}).phase is Phase.SETUP
    assert scheduler.pending == 0


@pytest.mark.parametrize("options", [
    {"mode": "practice", "count": "5"},
    {"mode": "practice", "count": 2.5},
    {"mode": "practice", "count": True},
    {"mode": "timed", "timeLimitSeconds": "60"},
    {"mode": "custom", "maxMasked": [2]},
])
def test_wrongly_typed_start_options_are_ignored(pizza_session, scheduler, options):
    """Start options must be whole numbers; anything else leaves the session in setup."""
    assert pizza_session.start(options).phase is Phase.SETUP
    assert scheduler.pending == 0


def test_wrongly_typed_config_is_ignored(pizza_session):
    assert pizza_session.start(SessionConfig(count="5")).phase is Phase.SETUP
    assert pizza_session.start(SessionConfig(mode=QuizMode.TIMED, time_limit_seconds=1.5)).phase is Phase.SETUP


def test_exit_during_active_question_records_nothing(build_session, corpus, scheduler, listener):
    """Leaving mid-question stops the countdown and never credits the open question."""
    session = build_session(corpus)
    state = session.start(SessionConfig(mode=QuizMode.TIMED, time_limit_seconds=60))
    question = state.current_question
    position = question.masked_positions[0]
    session.submit_letter(position, wrong_vowel(question.word.text[position]))

    state = session.exit()
    assert state.phase is Phase.TERMINATED
    assert session.tracker.history == []
    assert session.pending_timers == ()
    assert scheduler.pending == 0

    scheduler.advance(60_000)
    assert session.state.phase is Phase.TERMINATED
    assert session.state.summary is None
    assert session.state.time_remaining == 60
    assert listener.summaries == []
    assert session.tracker.summaries == []


def exited_count(mode: str) -> float:
    value = REGISTRY.get_sample_value(
        "wordquest_sessions_finished_total", {"mode": mode, "outcome": "exited"}
    )
    return value or 0.0


def test_exit_metric_counts_only_running_sessions(build_session, make_word):
    session = build_session([make_word("1", "pizza")])
    before = exited_count("practice")

    session.exit()
    assert exited_count("practice") == before

    session.reset()
    session.start(SessionConfig())
    session.exit()
    assert exited_count("practice") == before + 1

    session.exit()
    assert exited_count("practice") == before + 1


def test_start_from_dict(pizza_session):
    state = pizza_session.start({"mode": "challenge", "difficulty": "mixed", "category": "all", "count": 1})
    assert state.phase is Phase.ACTIVE
    assert state.config.mode is QuizMode.CHALLENGE
    assert len(state.questions) == 1


def test_start_twice_is_ignored(pizza_session):
    first = pizza_session.start(SessionConfig())
    assert pizza_session.start(SessionConfig(mode=QuizMode.TIMED)) is first


def test_no_eligible_words_completes_immediately(build_session, make_word, listener):
    session = build_session([make_word("1", "sky"), make_word("2", "rhythm")])
    state = session.start(SessionConfig())
    assert state.phase is Phase.COMPLETE
    assert state.summary.total_questions == 0
    assert state.summary.accuracy == 0
    assert listener.cues == [Cue.COMPLETE]


def test_full_session_summary(build_session, corpus, scheduler, listener):
    """Answering every question finishes with a summary for the listeners."""
    session = build_session(corpus)
    session.start(SessionConfig(mode=QuizMode.PRACTICE, count=3))
    for _ in range(3):
        answer(session)
        scheduler.advance(2_000)

    state = session.state
    assert state.phase is Phase.COMPLETE
    summary = state.summary
    assert summary.outcome is SessionOutcome.FINISHED
    assert summary.correct_answers == 3
    assert summary.perfect_answers == 3
    assert summary.accuracy == 1
    assert summary.total_points == 30
    assert summary.max_points == 30
    assert listener.summaries == [summary]
    assert listener.cues == [Cue.CORRECT] * 3 + [Cue.COMPLETE]
    assert len(session.tracker.history) == 3
    assert session.tracker.summaries == [summary]


def test_letters_after_resolution_are_ignored(pizza_session):
    state = pizza_session.start(SessionConfig())
    question = state.current_question
    position = question.masked_positions[0]
    resolved = pizza_session.submit_letter(position, question.word.text[position])
    assert pizza_session.submit_letter(position, "a") is resolved


def test_failing_listener_does_not_stop_session(build_session, corpus, scheduler):
    class Broken(QuizListener):
        def on_cue(self, cue):
            raise RuntimeError("speaker unplugged")

    session = build_session(corpus)
    session.add_listener(Broken())
    session.start(SessionConfig(count=1))
    answer(session)
    scheduler.advance(2_000)
    assert session.state.phase is Phase.COMPLETE


def test_listener_commands_are_queued(build_session, corpus):
    """A command issued from inside a listener runs after the current event."""
    session = build_session(corpus)
    seen = []

    class Skipper(QuizListener):
        def on_question_resolved(self, question, record):
            seen.append(session.state.phase)
            session.advance()

    session.add_listener(Skipper())
    session.start(SessionConfig(count=2))
    answer(session)
    assert seen == [Phase.FEEDBACK]
    assert session.state.phase is Phase.ACTIVE
    assert session.state.current_index == 1
    assert session.pending_timers == ()


def test_reset_returns_to_setup(pizza_session):
    pizza_session.start(SessionConfig())
    assert pizza_session.reset().phase is Phase.SETUP
    assert pizza_session.start(SessionConfig()).phase is Phase.ACTIVE


def test_machine_replay_is_deterministic(corpus):
    """The same events from the same state give the same states and effects."""
    machine = QuizMachine(GradingEngine(ScoringSettings()), HintProvider(ScoringSettings()), QuizSettings())
    questions = tuple(QuestionGenerator(corpus, random.Random(9)).generate(2))
    question = questions[0]
    position = question.masked_positions[0]
    events = [
        Start(SessionConfig(count=2), questions, 0),
        SubmitLetter(position, wrong_vowel(question.word.text[position]), 500),
        SubmitLetter(position, question.word.text[position], 900),
        Advance(2_900, from_timer=True),
        RequestHint(3_500),
        Advance(6_500, from_timer=True),
    ]

    def replay():
        state, effects = QuizState(), []
        for event in events:
            transition = machine.transition(state, event)
            state = transition.state
            effects.extend(transition.effects)
        return state, effects

    first_state, first_effects = replay()
    second_state, second_effects = replay()
    assert first_state == second_state
    assert first_effects == second_effects
    assert first_state.phase is Phase.COMPLETE
    assert first_state.counters.correct_answers == 2
    assert first_state.counters.time_spent_ms == 900 + 600
    assert isinstance(first_effects[-1], SessionFinished)
    assert EmitCue(Cue.COMPLETE) in first_effects
    assert CancelTimer(TimerKind.ADVANCE) in first_effects
    assert ScheduleTimer(TimerKind.ADVANCE, 3_000) in first_effects
