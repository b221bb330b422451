"""
Stabilization Engine

Drives a Session from three asynchronous sources:
- OCR observations from submitted frames
- The periodic evaluator tick
- One-shot threshold checkpoints (sensitivity, illumination, emergency)

Every source posts a message into one asyncio.Queue; a single actor task
consumes it, so all session mutation happens in one place. Messages carry
the session id and are dropped when they outlive their session.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Callable, Deque, List, Optional, Sequence, Set

from loguru import logger

from steadytext.config import StabilizerSettings, get_settings
from steadytext.exceptions import InvalidOperationError
from steadytext.ocr.confidence_scorer import ConfidenceScorer
from steadytext.ocr.ocr_provider import OCRBlock, OCRProvider, expand_lines, recognize_async
from steadytext.stabilization.burst import BurstMajorityVoter
from steadytext.stabilization.decision import Decision, DecisionSource
from steadytext.stabilization.evaluator import PeriodicEvaluator
from steadytext.stabilization.session import Clock, Session
from steadytext.stabilization.thresholds import AdaptiveThresholdController, ThresholdStage


DecisionSink = Callable[[Decision], None]
StatusSink = Callable[[str], None]


# =============================================================================
# Inbox messages
# =============================================================================

@dataclass
class _Observation:
    session_id: str
    blocks: List[OCRBlock]


@dataclass
class _Tick:
    session_id: str


@dataclass
class _Checkpoint:
    session_id: str
    stage: ThresholdStage


@dataclass
class EngineStats:
    """Counters for the frame path."""
    frames_accepted: int = 0
    frames_dropped: int = 0
    recognition_failures: int = 0
    observations_recorded: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class StabilizationEngine:
    """
    Adaptive detection stabilization engine.

    Usage:
        engine = StabilizationEngine(provider, on_decision=print)
        await engine.start()
        for frame in frames:
            engine.submit_frame(frame)
            await asyncio.sleep(0.03)
        decision = await engine.wait_for_decision(timeout=5.0)
        await engine.stop()
    """

    def __init__(
        self,
        provider: Optional[OCRProvider] = None,
        settings: Optional[StabilizerSettings] = None,
        on_decision: Optional[DecisionSink] = None,
        on_status: Optional[StatusSink] = None,
        clock: Clock = time.monotonic,
    ):
        """
        Args:
            provider: OCR provider used by submit_frame and burst_capture
            settings: Engine settings, defaults to get_settings()
            on_decision: Called once per committed decision
            on_status: Called with informational status strings
            clock: Monotonic clock in seconds, used for session elapsed time
        """
        self.provider = provider
        self.settings = (settings or get_settings()).validate()
        self.on_decision = on_decision
        self.on_status = on_status
        self.clock = clock

        self.scorer = ConfidenceScorer()
        self.controller = AdaptiveThresholdController(self.settings)
        self.evaluator = PeriodicEvaluator(self.settings)
        self.voter = BurstMajorityVoter(self.settings, self.scorer)

        self.session: Optional[Session] = None
        self.stats = EngineStats()
        self.recent_decisions: Deque[Decision] = deque(maxlen=self.settings.history_size)

        self._last_session_id: Optional[str] = None
        self._inbox: Optional[asyncio.Queue] = None
        self._actor: Optional[asyncio.Task] = None
        self._ticker: Optional[asyncio.Task] = None
        self._timers: List[asyncio.TimerHandle] = []
        self._inflight: Optional[asyncio.Task] = None
        self._decision_future: Optional[asyncio.Future] = None
        self._background: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self.session is not None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> Session:
        """
        Start a new scanning session, discarding any previous one.

        Returns:
            The new Session
        """
        await self.stop()

        loop = asyncio.get_running_loop()
        session = Session(
            self.settings,
            clock=self.clock,
            scorer=self.scorer,
            controller=self.controller,
        )
        self.session = session
        self._last_session_id = session.id
        self._inbox = asyncio.Queue()
        self._decision_future = loop.create_future()

        self._actor = asyncio.create_task(self._run(session, self._inbox))
        self._ticker = asyncio.create_task(self._tick_loop(session.id))
        for delay_s, stage in self.controller.checkpoints():
            self._timers.append(
                loop.call_later(delay_s, self._post, _Checkpoint(session.id, stage))
            )

        logger.info(f"Session {session.id} started")
        self._status("Scanning started")
        return session

    async def stop(self) -> None:
        """Stop the active session. Safe to call repeatedly or before start."""
        session = self.session
        if session is None:
            return

        self.session = None
        session.stop()
        self._cancel_schedules()

        if self._inflight is not None:
            self._inflight.cancel()
            self._inflight = None

        # A start() may run while the actor is awaited; only release what
        # belongs to this session.
        inbox, future = self._inbox, self._decision_future
        if future is not None and not future.done():
            future.set_result(None)

        actor, self._actor = self._actor, None
        if actor is not None and actor is not asyncio.current_task():
            actor.cancel()
            try:
                await actor
            except asyncio.CancelledError:
                pass
        if self._inbox is inbox:
            self._inbox = None

        if session.decision is None:
            logger.info(
                f"Session {session.id} stopped without a decision "
                f"after {session.elapsed_ms():.0f}ms"
            )
            self._status("Scanning stopped without a result")
        else:
            logger.debug(f"Session {session.id} stopped")

    def _cancel_schedules(self) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers = []

        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def wait_for_decision(self, timeout: Optional[float] = None) -> Optional[Decision]:
        """
        Wait for the current (or last) session's decision.

        Returns:
            The Decision, or None on timeout or if the session stopped
            without one
        """
        if self._decision_future is None:
            raise InvalidOperationError("No session has been started")
        try:
            return await asyncio.wait_for(asyncio.shield(self._decision_future), timeout)
        except asyncio.TimeoutError:
            return None

    # =========================================================================
    # Observation input
    # =========================================================================

    def submit_blocks(self, blocks: Sequence[OCRBlock]) -> None:
        """
        Feed already-recognized blocks into the active session.

        Raises:
            InvalidOperationError: If no session is running
        """
        session = self._require_session()
        self._post(_Observation(session.id, list(blocks)))

    def submit_frame(self, frame: Any) -> bool:
        """
        Hand a frame to the OCR provider.

        At most one recognition runs at a time; a frame arriving while the
        previous one is still being recognized is dropped.

        Returns:
            True if the frame was accepted, False if dropped

        Raises:
            InvalidOperationError: If no session is running or no provider
                was configured
        """
        session = self._require_session()
        if self.provider is None:
            raise InvalidOperationError("submit_frame requires an OCR provider")

        if self._inflight is not None and not self._inflight.done():
            self.stats.frames_dropped += 1
            return False

        self.stats.frames_accepted += 1
        self._inflight = asyncio.create_task(self._recognize(session.id, frame))
        return True

    async def _recognize(self, session_id: str, frame: Any) -> None:
        try:
            blocks = await recognize_async(self.provider, frame)
        except Exception as e:
            self.stats.recognition_failures += 1
            logger.debug(f"Recognition failed, skipping frame: {e}")
            blocks = []

        if blocks:
            if self.settings.include_line_text:
                blocks = expand_lines(blocks)
            self._post(_Observation(session_id, blocks))

        if self.settings.frame_cooldown_s:
            await asyncio.sleep(self.settings.frame_cooldown_s)

    def _require_session(self) -> Session:
        if self.session is None:
            if self._last_session_id is None:
                raise InvalidOperationError("Scanning session was never started")
            raise InvalidOperationError(
                "Scanning session has stopped",
                detail=f"session {self._last_session_id}",
            )
        return self.session

    # =========================================================================
    # Actor
    # =========================================================================

    def _post(self, message) -> None:
        if self._inbox is not None:
            self._inbox.put_nowait(message)

    async def _tick_loop(self, session_id: str) -> None:
        while True:
            await asyncio.sleep(self.settings.evaluation_interval_s)
            self._post(_Tick(session_id))

    async def _run(self, session: Session, inbox: asyncio.Queue) -> None:
        while True:
            message = await inbox.get()
            if message.session_id != session.id or session.stopped:
                continue

            try:
                if isinstance(message, _Observation):
                    self._handle_observation(session, message.blocks)
                elif isinstance(message, _Tick):
                    self._handle_tick(session)
                elif isinstance(message, _Checkpoint):
                    self._handle_checkpoint(session, message.stage)
            except Exception:
                logger.exception(f"Session {session.id}: failed to handle {type(message).__name__}")

    def _handle_observation(self, session: Session, blocks: List[OCRBlock]) -> None:
        if session.is_decided:
            return
        recorded = session.observe(blocks)
        self.stats.observations_recorded += recorded
        logger.debug(f"Session {session.id}: recorded {recorded}/{len(blocks)} blocks")

    def _handle_tick(self, session: Session) -> None:
        decision = self.evaluator.evaluate(session)
        if decision is not None:
            self._commit(session, decision)

    def _handle_checkpoint(self, session: Session, stage: ThresholdStage) -> None:
        fired = session.advance_thresholds(stage)
        if not fired:
            return

        state = session.thresholds
        if ThresholdStage.SENSITIVE in fired:
            self._status(
                f"Relaxing thresholds: confidence>={state.confidence_threshold:.2f}, "
                f"occurrence>={state.occurrence_threshold}"
            )
        if ThresholdStage.ILLUMINATED in fired:
            self._status("Illumination boost active")
        if ThresholdStage.EMERGENCY_DUE in fired:
            self._run_emergency(session)

    def _run_emergency(self, session: Session) -> None:
        best = session.best.emergency_candidate(self.settings.emergency_min_score)
        if best is None:
            score = session.best.best.score
            logger.info(f"Session {session.id}: emergency fallback declined (best score {score:.3f})")
            self._status("No confident reading yet")
            return

        decision = Decision(
            text=best.text,
            score=best.score,
            elapsed_ms=session.elapsed_ms(),
            source=DecisionSource.EMERGENCY,
            session_id=session.id,
        )
        if session.commit(decision):
            self._commit(session, decision)

    def _commit(self, session: Session, decision: Decision) -> None:
        """Publish a decision already stored on the session and wind it down."""
        self._cancel_schedules()
        self.recent_decisions.appendleft(decision)

        if self._decision_future is not None and not self._decision_future.done():
            self._decision_future.set_result(decision)

        self._notify_decision(decision)
        self._status(f"Detected '{decision.text}' ({decision.source.value})")

        loop = asyncio.get_running_loop()
        self._timers.append(
            loop.call_later(self.settings.stop_grace_s, self._request_stop, session.id)
        )

    def _request_stop(self, session_id: str) -> None:
        task = asyncio.create_task(self._stop_session(session_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _stop_session(self, session_id: str) -> None:
        if self.session is not None and self.session.id == session_id:
            await self.stop()

    # =========================================================================
    # Burst path
    # =========================================================================

    async def burst_capture(
        self,
        capture_frame: Callable[[], Any],
        shots: Optional[int] = None,
        interval_s: Optional[float] = None,
    ) -> Optional[Decision]:
        """
        Run a burst majority vote. Independent of any streaming session.

        Returns:
            A burst-sourced Decision, or None if the vote was empty
        """
        if self.provider is None:
            raise InvalidOperationError("burst_capture requires an OCR provider")

        started = self.clock()
        result = await self.voter.capture(self.provider, capture_frame, shots, interval_s)
        if result is None:
            self._status("Burst capture found no text")
            return None

        decision = Decision(
            text=result.text,
            score=result.share,
            elapsed_ms=(self.clock() - started) * 1000,
            source=DecisionSource.BURST,
        )
        self.recent_decisions.appendleft(decision)
        self._notify_decision(decision)
        self._status(f"Detected '{decision.text}' (burst)")
        return decision

    # =========================================================================
    # Sinks
    # =========================================================================

    def clear_history(self) -> None:
        self.recent_decisions.clear()

    def _notify_decision(self, decision: Decision) -> None:
        if self.on_decision is None:
            return
        try:
            self.on_decision(decision)
        except Exception:
            logger.exception("Decision sink raised")

    def _status(self, message: str) -> None:
        logger.debug(message)
        if self.on_status is None:
            return
        try:
            self.on_status(message)
        except Exception:
            logger.exception("Status sink raised")
