"""Quiz session state machine and its driver."""
import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import Any, Deque, Dict, List, Mapping, Optional, Tuple, Union

from wordquest import monitoring
from wordquest.config import QuizSettings, settings
from wordquest.models.event_models import (
    Advance,
    CancelTimer,
    ClearWrongFlag,
    Effect,
    EmitCue,
    Event,
    Exit,
    LetterRejected,
    QuestionResolved,
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
    MasteryRecord,
    Phase,
    Question,
    QuestionStatus,
    QuizState,
    SessionConfig,
    SessionCounters,
    SessionOutcome,
    SessionSummary,
)
from wordquest.services.grading_engine import GradingEngine, LetterOutcome
from wordquest.services.hint_provider import HintProvider
from wordquest.services.mastery_tracker import MasteryTracker, accumulate, summarize
from wordquest.services.question_generator import QuestionGenerator
from wordquest.services.scheduler_service import AsyncioScheduler, Scheduler, TimerHandle


logger = logging.getLogger(__name__)

CANCEL_ALL = tuple(CancelTimer(kind) for kind in TimerKind)


@dataclass(frozen=True)
class Transition:
    """New state plus the side effects the driver has to carry out."""
    state: QuizState
    effects: Tuple[Effect, ...] = ()


class QuizMachine:
    """Pure transition function `(state, event) -> (state, effects)`.

    Events that make no sense in the current phase (stale timer ticks,
    letters after resolution, hints twice) return the state unchanged.
    """

    def __init__(
        self,
        grading: Optional[GradingEngine] = None,
        hints: Optional[HintProvider] = None,
        quiz_settings: Optional[QuizSettings] = None,
    ):
        self.grading = grading or GradingEngine()
        self.hints = hints or HintProvider()
        self.settings = quiz_settings or settings.quiz

    def transition(self, state: QuizState, event: Event) -> Transition:
        if isinstance(event, Start):
            return self._start(state, event)
        if isinstance(event, Exit):
            return self._exit(state)
        if isinstance(event, SubmitLetter):
            return self._submit_letter(state, event)
        if isinstance(event, RequestHint):
            return self._request_hint(state, event)
        if isinstance(event, Advance):
            return self._advance(state, event)
        if isinstance(event, Tick):
            return self._tick(state, event)
        if isinstance(event, ClearWrongFlag):
            return self._clear_wrong_flag(state, event)
        logger.warning(f"Unknown event {event!r}")
        return Transition(state)

    def _countdown(self) -> ScheduleTimer:
        return ScheduleTimer(TimerKind.COUNTDOWN, self.settings.tick_interval_ms)

    def _start(self, state: QuizState, event: Start) -> Transition:
        if state.phase is not Phase.SETUP or not event.config.is_valid():
            return Transition(state)

        questions = tuple(event.questions)
        started = QuizState(
            config=event.config,
            phase=Phase.ACTIVE,
            questions=questions,
            current_index=0,
            time_remaining=event.config.time_limit,
            counters=SessionCounters(),
        )
        if not questions:
            return self._complete(started, SessionOutcome.FINISHED)

        started = started.with_current(questions[0].activate(event.at_ms))
        effects = (self._countdown(),) if event.config.is_timed else ()
        return Transition(started, effects)

    def _submit_letter(self, state: QuizState, event: SubmitLetter) -> Transition:
        question = state.current_question
        if state.phase is not Phase.ACTIVE or question is None:
            return Transition(state)

        result = self.grading.submit_letter(question, event.position, event.letter)
        if result.outcome is LetterOutcome.IGNORED:
            return Transition(state)
        if result.outcome is LetterOutcome.RESOLVED:
            return self._resolve(state, result.question, event.at_ms, self.settings.feedback_delay_ms)

        updated = state.with_current(result.question)
        if result.outcome is LetterOutcome.ACCEPTED:
            return Transition(updated)
        return Transition(updated, (
            EmitCue(Cue.INCORRECT),
            LetterRejected(result.question, event.position),
            ScheduleTimer(TimerKind.WRONG_FLAG, self.settings.wrong_flag_ms, event.position),
        ))

    def _request_hint(self, state: QuizState, event: RequestHint) -> Transition:
        question = state.current_question
        if state.phase is not Phase.ACTIVE or question is None:
            return Transition(state)

        hinted = self.hints.apply(question)
        if hinted is None:
            return Transition(state)
        return self._resolve(state, hinted, event.at_ms, self.settings.hint_advance_delay_ms)

    def _resolve(self, state: QuizState, question: Question, at_ms: int, delay_ms: int) -> Transition:
        elapsed = question.elapsed_ms(at_ms)
        resolved = replace(
            state.with_current(question),
            phase=Phase.FEEDBACK,
            counters=accumulate(state.counters, question, elapsed),
        )
        effects: List[Effect] = [CancelTimer(TimerKind.COUNTDOWN), CancelTimer(TimerKind.WRONG_FLAG)]
        if question.status is QuestionStatus.CORRECT:
            effects.append(EmitCue(Cue.CORRECT))
        effects.append(QuestionResolved(question, elapsed))
        effects.append(ScheduleTimer(TimerKind.ADVANCE, delay_ms))
        return Transition(resolved, tuple(effects))

    def _advance(self, state: QuizState, event: Advance) -> Transition:
        if state.phase is not Phase.FEEDBACK:
            return Transition(state)

        if state.is_last_question:
            finished = replace(state, current_index=len(state.questions))
            return self._complete(finished, SessionOutcome.FINISHED)

        index = state.current_index + 1
        advanced = replace(state, phase=Phase.ACTIVE, current_index=index)
        advanced = advanced.with_current(state.questions[index].activate(event.at_ms))
        effects: List[Effect] = [CancelTimer(TimerKind.ADVANCE)]
        if state.config.is_timed:
            effects.append(self._countdown())
        return Transition(advanced, tuple(effects))

    def _tick(self, state: QuizState, event: Tick) -> Transition:
        if state.phase is not Phase.ACTIVE or state.time_remaining is None:
            return Transition(state)

        remaining = state.time_remaining - 1
        if remaining > 0:
            return Transition(replace(state, time_remaining=remaining), (self._countdown(),))

        # Out of time: the open question gets no credit.
        counters = state.counters
        question = state.current_question
        if question is not None:
            counters = accumulate(counters, question, question.elapsed_ms(event.at_ms), interrupted=True)
        expired = replace(state, time_remaining=0, counters=counters)
        return self._complete(expired, SessionOutcome.TIMED_OUT)

    def _clear_wrong_flag(self, state: QuizState, event: ClearWrongFlag) -> Transition:
        question = state.current_question
        if state.phase is not Phase.ACTIVE or question is None:
            return Transition(state)
        cleared = self.grading.clear_wrong_flag(question, event.position)
        if cleared is question:
            return Transition(state)
        return Transition(state.with_current(cleared))

    def _complete(self, state: QuizState, outcome: SessionOutcome) -> Transition:
        completed = replace(state, phase=Phase.COMPLETE)
        summary = summarize(completed, outcome, self.grading.max_points)
        completed = replace(completed, summary=summary)
        return Transition(completed, CANCEL_ALL + (EmitCue(Cue.COMPLETE), SessionFinished(summary)))

    def _exit(self, state: QuizState) -> Transition:
        if state.is_finished:
            return Transition(state)
        return Transition(replace(state, phase=Phase.TERMINATED), CANCEL_ALL)


class QuizListener:
    """Presentation and audio collaborator hooks. Methods default to no-ops."""

    def on_state_changed(self, state: QuizState) -> None:
        pass

    def on_cue(self, cue: Cue) -> None:
        pass

    def on_letter_rejected(self, question: Question, position: int) -> None:
        pass

    def on_question_resolved(self, question: Question, record: Optional[MasteryRecord]) -> None:
        pass

    def on_session_finished(self, summary: SessionSummary) -> None:
        pass


class QuizSession:
    """Drives one quiz session: turns commands and timers into events.

    Events are processed one at a time; an event raised while another is
    being handled (for example by a listener) is queued behind it.
    """

    def __init__(
        self,
        generator: QuestionGenerator,
        grading: Optional[GradingEngine] = None,
        hints: Optional[HintProvider] = None,
        tracker: Optional[MasteryTracker] = None,
        scheduler: Optional[Scheduler] = None,
        listeners: Optional[List[QuizListener]] = None,
        quiz_settings: Optional[QuizSettings] = None,
    ):
        self.generator = generator
        self.machine = QuizMachine(grading, hints, quiz_settings)
        self.tracker = tracker or MasteryTracker()
        self.scheduler = scheduler or AsyncioScheduler()
        self.listeners: List[QuizListener] = list(listeners or [])
        self.state = QuizState()
        self._timers: Dict[TimerKind, TimerHandle] = {}
        self._timer_tokens: Dict[TimerKind, int] = {kind: 0 for kind in TimerKind}
        self._pending: Deque[Event] = deque()
        self._dispatching = False

    def add_listener(self, listener: QuizListener) -> None:
        self.listeners.append(listener)

    # Commands

    def start(self, config: Union[SessionConfig, Mapping[str, Any]]) -> QuizState:
        """Generate questions and enter the question loop."""
        if self.state.phase is not Phase.SETUP:
            logger.warning(f"Ignoring start while session is {self.state.phase.value}")
            return self.state
        if not isinstance(config, SessionConfig):
            try:
                config = SessionConfig.from_dict(config)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring start with invalid options {config!r}: {e}")
                return self.state
        if not config.is_valid():
            logger.warning(f"Ignoring start with invalid config {config!r}")
            return self.state

        questions = self.generator.generate(
            config.question_count,
            mode=config.mode,
            category=config.category,
            difficulty=config.difficulty,
            max_masked=config.max_masked,
        )
        logger.info(f"Starting {config.mode.value} session with {len(questions)} questions")
        monitoring.sessions_started.labels(mode=config.mode.value).inc()
        return self.dispatch(Start(config, tuple(questions), self.scheduler.now_ms()))

    def submit_letter(self, position: int, letter: str) -> QuizState:
        return self.dispatch(SubmitLetter(position, letter, self.scheduler.now_ms()))

    def request_hint(self) -> QuizState:
        return self.dispatch(RequestHint(self.scheduler.now_ms()))

    def advance(self) -> QuizState:
        return self.dispatch(Advance(self.scheduler.now_ms()))

    def exit(self) -> QuizState:
        if self.state.phase in (Phase.ACTIVE, Phase.FEEDBACK):
            logger.info(f"Session exited during {self.state.phase.value}")
            monitoring.sessions_finished.labels(mode=self.state.config.mode.value, outcome="exited").inc()
        return self.dispatch(Exit(self.scheduler.now_ms()))

    def reset(self) -> QuizState:
        """Drop the current session and return to setup."""
        self.exit()
        self.state = QuizState()
        return self.state

    # Event loop

    def dispatch(self, event: Event) -> QuizState:
        self._pending.append(event)
        if self._dispatching:
            return self.state
        self._dispatching = True
        try:
            while self._pending:
                self._handle(self._pending.popleft())
        finally:
            self._dispatching = False
        return self.state

    def _handle(self, event: Event) -> None:
        transition = self.machine.transition(self.state, event)
        changed = transition.state is not self.state
        self.state = transition.state
        if changed:
            self._notify("on_state_changed", self.state)
        for effect in transition.effects:
            self._apply(effect)

    def _apply(self, effect: Effect) -> None:
        mode = self.state.config.mode.value
        if isinstance(effect, ScheduleTimer):
            self._schedule(effect)
        elif isinstance(effect, CancelTimer):
            self._cancel(effect.kind)
        elif isinstance(effect, EmitCue):
            self._notify("on_cue", effect.cue)
        elif isinstance(effect, LetterRejected):
            monitoring.wrong_letters.labels(mode=mode).inc()
            self._notify("on_letter_rejected", effect.question, effect.position)
        elif isinstance(effect, QuestionResolved):
            question = effect.question
            monitoring.questions_resolved.labels(mode=mode, status=question.status.value).inc()
            monitoring.question_duration.labels(mode=mode).observe(effect.elapsed_ms / 1000)
            if question.hints_used:
                monitoring.hints_used.labels(mode=mode).inc()
            record = self.tracker.record_resolution(question)
            self._notify("on_question_resolved", question, record)
        elif isinstance(effect, SessionFinished):
            monitoring.sessions_finished.labels(mode=mode, outcome=effect.summary.outcome.value).inc()
            self.tracker.finalize_session(effect.summary)
            self._notify("on_session_finished", effect.summary)

    def _schedule(self, effect: ScheduleTimer) -> None:
        self._cancel(effect.kind)
        self._timer_tokens[effect.kind] += 1
        token = self._timer_tokens[effect.kind]

        def fire() -> None:
            if self._timer_tokens[effect.kind] != token:
                return
            self._timers.pop(effect.kind, None)
            self.dispatch(self._timer_event(effect))

        self._timers[effect.kind] = self.scheduler.call_later(effect.delay_ms, fire)

    def _timer_event(self, effect: ScheduleTimer) -> Event:
        now = self.scheduler.now_ms()
        if effect.kind is TimerKind.COUNTDOWN:
            return Tick(now)
        if effect.kind is TimerKind.ADVANCE:
            return Advance(now, from_timer=True)
        return ClearWrongFlag(effect.position, now)

    def _cancel(self, kind: TimerKind) -> None:
        self._timer_tokens[kind] += 1
        handle = self._timers.pop(kind, None)
        if handle is not None:
            handle.cancel()

    def _notify(self, method: str, *args: Any) -> None:
        for listener in self.listeners:
            try:
                getattr(listener, method)(*args)
            except Exception as e:
                logger.exception(f"Quiz listener {method} failed: {e}")

    @property
    def pending_timers(self) -> Tuple[TimerKind, ...]:
        return tuple(self._timers)
