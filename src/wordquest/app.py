"""Console front end for the quiz engine."""
import asyncio
import logging
from typing import Optional

from wordquest.config import settings
from wordquest.models.base import SessionLocal, init_db
from wordquest.models.quiz_models import (
    Cue,
    Phase,
    Question,
    QuizState,
    SessionConfig,
    SessionSummary,
)
from wordquest.monitoring import start_monitoring
from wordquest.services.corpus_service import load_corpus
from wordquest.services.mastery_tracker import MasteryTracker
from wordquest.services.progress_service import ProgressService
from wordquest.services.question_generator import QuestionGenerator
from wordquest.services.quiz_session import QuizListener, QuizSession
from wordquest.services.scheduler_service import AsyncioScheduler


class ConsoleListener(QuizListener):
    """Prints the quiz to stdout."""

    def __init__(self):
        self.shown_question: Optional[str] = None
        self.finished = asyncio.Event()

    def on_state_changed(self, state: QuizState) -> None:
        question = state.current_question
        if state.phase is Phase.ACTIVE and question and question.id != self.shown_question:
            self.shown_question = question.id
            self.show(state, question)
        elif state.phase is Phase.ACTIVE and question:
            print(f"  {question.display_text}")
        if state.is_finished:
            self.finished.set()

    def show(self, state: QuizState, question: Question) -> None:
        timer = f" ({state.time_remaining}s left)" if state.time_remaining is not None else ""
        positions = ", ".join(str(p) for p in question.masked_positions)
        print(f"\nQuestion {state.current_index + 1}/{len(state.questions)}{timer}")
        print(f"  {question.display_text}   [{question.word.category}] missing positions: {positions}")

    def on_cue(self, cue: Cue) -> None:
        if cue is Cue.INCORRECT:
            print("  Oops! Try a different vowel.")
        elif cue is Cue.CORRECT:
            print("  Correct!")

    def on_question_resolved(self, question, record) -> None:
        print(f"  {question.word.text.upper()} +{question.points} points")

    def on_session_finished(self, summary: SessionSummary) -> None:
        print(
            f"\nDone! {summary.correct_answers}/{summary.questions_attempted} correct "
            f"({summary.accuracy:.0%}), {summary.total_points}/{summary.max_points} points, "
            f"{summary.hints_used} hints"
        )
        self.finished.set()


class WordQuestApp:
    """Main application class."""

    def __init__(self, learner_id: str = "default"):
        """Initialize the application."""
        self.learner_id = learner_id
        self.db = None
        self.session: Optional[QuizSession] = None
        self.listener = ConsoleListener()
        self.logger = logging.getLogger(__name__)

    def build_session(self) -> QuizSession:
        init_db()
        self.db = SessionLocal()
        self.logger.info("Database initialized")

        words = load_corpus()
        tracker = MasteryTracker(listeners=[ProgressService(self.db, self.learner_id)])
        return QuizSession(
            QuestionGenerator(words),
            tracker=tracker,
            scheduler=AsyncioScheduler(),
            listeners=[self.listener],
        )

    def handle_command(self, line: str) -> None:
        """Translate one line of input into a session command."""
        parts = line.strip().lower().split()
        if not parts:
            return
        if parts[0] in ("quit", "exit"):
            self.session.exit()
        elif parts[0] == "hint":
            self.session.request_hint()
        elif parts[0] == "next":
            self.session.advance()
        elif len(parts) == 2 and parts[0].isdigit():
            self.session.submit_letter(int(parts[0]), parts[1])
        elif len(parts) == 1 and len(parts[0]) == 1:
            question = self.session.state.current_question
            open_positions = [p for p in question.masked_positions if p not in question.filled] if question else []
            if open_positions:
                self.session.submit_letter(open_positions[0], parts[0])
        else:
            print("  Commands: <letter> | <position> <letter> | hint | next | quit")

    async def run(self, config: SessionConfig) -> None:
        """Run one session, reading commands from stdin."""
        loop = asyncio.get_running_loop()
        if settings.monitoring.enabled:
            start_monitoring(settings.monitoring.port)

        self.session = self.build_session()
        finished = asyncio.ensure_future(self.listener.finished.wait())
        try:
            self.session.start(config)
            while not self.session.state.is_finished:
                read = loop.run_in_executor(None, input, "> ")
                done, _ = await asyncio.wait({read, finished}, return_when=asyncio.FIRST_COMPLETED)
                if read in done:
                    self.handle_command(read.result())
                else:
                    print("Press Enter to leave.")
        except (EOFError, KeyboardInterrupt):
            self.logger.info("Input closed, leaving session")
            self.session.exit()
        finally:
            finished.cancel()
            if self.db:
                self.db.close()
                self.logger.info("Database session closed")


def main(config: Optional[SessionConfig] = None, learner_id: str = "default") -> None:
    """Main entry point."""
    app = WordQuestApp(learner_id)
    asyncio.run(app.run(config or SessionConfig()))
