"""
Relay between one telephony media stream and one Realtime API session.

RelayOrchestrator owns both connections of a call. Events from the telephony
stream, events from the Realtime API and commit-timer ticks are all handled
under a single per-call asyncio.Lock, so the state in CallSession is only ever
touched by one handler at a time while separate calls run independently.

Lifecycle: CONNECTING -> CONFIGURING -> ACTIVE -> WRAPPING_UP -> CLOSED. Either
connection ending, or a fatal error on either side, runs the same idempotent
teardown which closes both connections and stops the commit timer.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from fastapi import WebSocket

from voice_gateway.audio_codec import check_media_format
from voice_gateway.bot.realtime_api import RealtimeSessionClient, session_config_from_settings
from voice_gateway.bot.telephony_stream import TelephonyStreamHandler
from voice_gateway.config.commit_policy import CommitPolicy
from voice_gateway.config.constants import (
    CALL_STATUS_COMPLETED,
    CALL_STATUS_INTERRUPTED,
    DEFAULT_SUMMARY_INSTRUCTIONS,
    LOGGER_NAME,
)
from voice_gateway.config.logging_config import bind_call_label
from voice_gateway.config.settings import GatewaySettings
from voice_gateway.exceptions import MediaFormatError, UpstreamConnectionError
from voice_gateway.models.call_report import CallReport
from voice_gateway.models.call_session import CallPhase, CallSession
from voice_gateway.models.realtime_schemas import RealtimeEvent, RealtimeEventKind
from voice_gateway.models.telephony_schemas import (
    MediaEvent,
    StartEvent,
    TelephonyEvent,
    TelephonyEventKind,
)
from voice_gateway.services.outcome_notifier import OutcomeNotifier

logger = logging.getLogger(LOGGER_NAME)

TelephonyHandler = Callable[[TelephonyEvent], Awaitable[None]]
RealtimeHandler = Callable[[RealtimeEvent], Awaitable[None]]


def _require_exhaustive(kinds, handlers: Dict, label: str) -> None:
    missing = [kind.value for kind in kinds if kind not in handlers]
    if missing:
        raise ValueError(f"No {label} handler for event kinds: {', '.join(missing)}")


class RelayOrchestrator:
    """
    Coordinates one call: wiring, barge-in, commit policy and teardown.

    This class handles:
    - Opening and configuring the upstream Realtime API session
    - Forwarding caller frames upstream once the session is ready
    - Forwarding synthesized audio back to the caller
    - Cancelling the agent's response when the caller talks over it
    - Emitting exactly one end-of-call report
    """

    def __init__(self, session: CallSession, upstream: RealtimeSessionClient,
                 downstream: TelephonyStreamHandler, notifier: OutcomeNotifier,
                 policy: Optional[CommitPolicy] = None,
                 summary_instructions: str = DEFAULT_SUMMARY_INSTRUCTIONS,
                 wait_for_session_ack: bool = False):
        self.session = session
        self.upstream = upstream
        self.downstream = downstream
        self.notifier = notifier
        self.policy = policy or CommitPolicy()
        self.summary_instructions = summary_instructions
        self.wait_for_session_ack = wait_for_session_ack

        self.ready = asyncio.Event()
        self._lock = asyncio.Lock()
        self._teardown_started = False
        self._upstream_task: Optional[asyncio.Task] = None
        self._timer_task: Optional[asyncio.Task] = None

        self._telephony_handlers: Dict[TelephonyEventKind, TelephonyHandler] = {
            TelephonyEventKind.CONNECTED: self._on_connected,
            TelephonyEventKind.START: self._on_start,
            TelephonyEventKind.MEDIA: self._on_media,
            TelephonyEventKind.STOP: self._on_stop,
            TelephonyEventKind.MARK: self._ignore_telephony_event,
            TelephonyEventKind.DTMF: self._ignore_telephony_event,
            TelephonyEventKind.UNKNOWN: self._ignore_telephony_event,
        }
        self._realtime_handlers: Dict[RealtimeEventKind, RealtimeHandler] = {
            RealtimeEventKind.SESSION_CREATED: self._on_session_created,
            RealtimeEventKind.SESSION_UPDATED: self._on_session_updated,
            RealtimeEventKind.AUDIO_DELTA: self._on_audio_delta,
            RealtimeEventKind.RESPONSE_DONE: self._on_response_done,
            RealtimeEventKind.TRANSCRIPT_DELTA: self._on_transcript_delta,
            RealtimeEventKind.TEXT_DELTA: self._on_text_delta,
            RealtimeEventKind.ERROR: self._on_upstream_error,
            RealtimeEventKind.UNKNOWN: self._ignore_realtime_event,
        }
        _require_exhaustive(TelephonyEventKind, self._telephony_handlers, "telephony")
        _require_exhaustive(RealtimeEventKind, self._realtime_handlers, "realtime")

    @classmethod
    def for_call(cls, websocket: WebSocket, lead_reference: str,
                 settings: GatewaySettings, notifier: OutcomeNotifier) -> "RelayOrchestrator":
        """Build the session and both connection wrappers for a newly accepted stream."""
        session = CallSession(lead_reference=lead_reference)
        upstream = RealtimeSessionClient(
            api_key=settings.openai_api_key,
            session_config=session_config_from_settings(settings),
            model=settings.realtime_model,
            url=settings.realtime_url,
            greeting=settings.greeting,
            connect_timeout=settings.upstream_connect_timeout,
        )
        downstream = TelephonyStreamHandler(websocket, session)
        return cls(
            session,
            upstream,
            downstream,
            notifier,
            policy=settings.commit_policy,
            summary_instructions=settings.summary_instructions,
            wait_for_session_ack=settings.wait_for_session_ack,
        )

    @property
    def label(self) -> str:
        return self.session.call_id or f"lead {self.session.lead_reference}"

    # Lifecycle

    async def run(self) -> None:
        """
        Relay the call until either side ends, then tear down.

        The upstream session is opened concurrently with reading the telephony
        stream; caller frames that arrive before it is ready are dropped.
        """
        bind_call_label(lambda: self.label)
        logger.info(f"Relay starting for {self.label}")
        self._upstream_task = asyncio.create_task(self._run_upstream())
        try:
            async for event in self.downstream.events():
                await self.handle_telephony_event(event)
                if self.session.closed:
                    break
        except Exception as e:
            logger.error(f"Error in telephony stream for {self.label}: {e}", exc_info=True)
        finally:
            await self.teardown("telephony stream ended")

    async def start_upstream(self) -> bool:
        """
        Connect and configure the Realtime API session.

        Returns:
            bool: True if the session was configured; False means the call
            cannot proceed and should be torn down
        """
        try:
            await self.upstream.connect()
        except UpstreamConnectionError as e:
            logger.error(f"Upstream connect failed for {self.label}: {e}")
            return False

        async with self._lock:
            if not self.session.can_transition(CallPhase.CONFIGURING):
                logger.info(f"Call {self.label} ended while connecting upstream")
                return False
            self.session.transition(CallPhase.CONFIGURING)
            if not await self.upstream.configure():
                logger.error(f"Could not send session configuration for {self.label}")
                return False
            if not self.wait_for_session_ack:
                self._mark_upstream_ready()
        return True

    async def _run_upstream(self) -> None:
        try:
            if not await self.start_upstream():
                return
            async for event in self.upstream.events():
                await self.handle_realtime_event(event)
                if self.session.closed:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in upstream stream for {self.label}: {e}", exc_info=True)
        finally:
            await self.teardown("upstream connection ended")

    def _mark_upstream_ready(self) -> None:
        if self.session.upstream_ready or self.session.phase is not CallPhase.CONFIGURING:
            return
        self.session.upstream_ready = True
        self.session.transition(CallPhase.ACTIVE)
        self.ready.set()
        self._start_commit_timer()
        logger.info(f"Upstream session ready for {self.label}")

    async def teardown(self, reason: str) -> None:
        """
        Close both connections and stop the commit timer.

        Safe to call repeatedly and from either side; every release step is
        attempted even if an earlier one fails, and nothing is raised.
        """
        if self._teardown_started:
            return
        self._teardown_started = True
        logger.info(f"Tearing down call {self.label}: {reason}")

        report_pending = not self.session.report_emitted and self.session.call_id is not None
        self.session.upstream_ready = False
        self.session.agent_speaking = False
        if not self.session.closed:
            self.session.transition(CallPhase.CLOSED)

        current = asyncio.current_task()
        tasks = [t for t in (self._timer_task, self._upstream_task)
                 if t is not None and t is not current and not t.done()]
        for task in tasks:
            task.cancel()

        try:
            await self.upstream.close()
        except Exception as e:
            logger.error(f"Error closing upstream connection for {self.label}: {e}")
        try:
            await self.downstream.close()
        except Exception as e:
            logger.error(f"Error closing telephony stream for {self.label}: {e}")

        if report_pending:
            self._emit_report(CALL_STATUS_INTERRUPTED)

        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Relay task for {self.label} failed during teardown: {e}")
        logger.info(f"Call {self.label} closed")

    # Telephony events

    async def handle_telephony_event(self, event: TelephonyEvent) -> None:
        async with self._lock:
            if self.session.closed:
                return
            await self._telephony_handlers[event.kind](event)

    async def _on_connected(self, event: TelephonyEvent) -> None:
        logger.debug(f"Telephony stream connected for {self.label}")

    async def _on_start(self, event: StartEvent) -> None:
        self.session.call_id = event.call_id
        self.session.stream_id = event.stream_id
        media_format = event.start.mediaFormat
        logger.info(f"Call started: {event.call_id}")
        logger.info(f"  -> media format: {media_format}")
        if media_format is None:
            return
        try:
            check_media_format(media_format.encoding, media_format.sampleRate, media_format.channels)
        except MediaFormatError as e:
            logger.error(f"Media format mismatch for {self.label}: {e}")
            await self.teardown(f"media format mismatch: {e}")

    async def _on_media(self, event: MediaEvent) -> None:
        if not event.is_inbound or not self.session.upstream_ready:
            return

        if await self.upstream.append_audio(event.payload):
            pending = self.session.record_frame()
            if self.policy.threshold_reached(pending):
                await self._commit("frame threshold")

        # Caller talking over the agent: cancel the in-flight response once
        if self.session.agent_speaking:
            self.session.agent_speaking = False
            logger.info(f"Barge-in on {self.label}; cancelling agent response")
            await self.upstream.cancel_response()

    async def _on_stop(self, event: TelephonyEvent) -> None:
        logger.info(f"Call ended: {self.label}")
        self.session.mark_ended()
        if self.session.can_transition(CallPhase.WRAPPING_UP):
            self.session.transition(CallPhase.WRAPPING_UP)

        if self.upstream.is_open:
            await self.upstream.request_response(
                instructions=self.summary_instructions, modalities=["text"]
            )

        self._emit_report(CALL_STATUS_COMPLETED)
        await self.downstream.close()

    async def _ignore_telephony_event(self, event: TelephonyEvent) -> None:
        logger.debug(f"Ignoring telephony event {event.event} for {self.label}")

    # Realtime events

    async def handle_realtime_event(self, event: RealtimeEvent) -> None:
        async with self._lock:
            if self.session.closed:
                return
            await self._realtime_handlers[event.kind](event)

    async def _on_session_created(self, event: RealtimeEvent) -> None:
        logger.debug(f"Upstream session created for {self.label}")

    async def _on_session_updated(self, event: RealtimeEvent) -> None:
        logger.debug(f"Upstream session configuration acknowledged for {self.label}")
        if self.wait_for_session_ack:
            self._mark_upstream_ready()

    async def _on_audio_delta(self, event: RealtimeEvent) -> None:
        payload = event.audio_payload
        if not payload:
            return
        self.session.agent_speaking = True
        await self.downstream.send_media(payload)

    async def _on_response_done(self, event: RealtimeEvent) -> None:
        if self.session.agent_speaking:
            self.session.agent_speaking = False

    async def _on_transcript_delta(self, event: RealtimeEvent) -> None:
        if event.delta:
            self.session.accumulated_transcript += event.delta

    async def _on_text_delta(self, event: RealtimeEvent) -> None:
        if event.delta:
            self.session.accumulated_summary += event.delta

    async def _on_upstream_error(self, event: RealtimeEvent) -> None:
        detail = event.error
        if detail is None:
            logger.error(f"Upstream error event for {self.label}: {event.model_dump()}")
            return
        logger.error(
            f"Upstream error event for {self.label}: "
            f"{detail.type or 'error'} {detail.code or ''} {detail.message or ''}".rstrip()
        )

    async def _ignore_realtime_event(self, event: RealtimeEvent) -> None:
        logger.debug(f"Ignoring upstream event {event.type}")

    # Commit policy

    async def _commit(self, reason: str) -> None:
        frames = self.session.take_pending_frames()
        await self.upstream.commit()
        logger.debug(f"Committed {frames} frames for {self.label} ({reason})")

    def _start_commit_timer(self) -> None:
        if not self.policy.timer_commits_enabled or self._timer_task is not None:
            return
        self._timer_task = asyncio.create_task(self._run_commit_timer())

    async def _run_commit_timer(self) -> None:
        interval = self.policy.interval_seconds
        while not self.session.closed:
            await asyncio.sleep(interval)
            await self.on_commit_timer()

    async def on_commit_timer(self) -> None:
        """Commit any frames still pending; a no-op when nothing was appended."""
        async with self._lock:
            if self.session.closed or not self.session.upstream_ready:
                return
            if self.session.pending_input_frames:
                await self._commit("timer")

    # Reporting

    def _emit_report(self, status: str) -> None:
        if self.session.report_emitted:
            return
        self.session.report_emitted = True
        try:
            report = CallReport.from_session(self.session, status)
            logger.info(f"Emitting {status} report for {self.label}")
            self.notifier.submit(report)
        except Exception as e:
            logger.error(f"Could not emit call report for {self.label}: {e}")
