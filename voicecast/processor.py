"""Sequential, cancellable text-to-speech job queue."""

import asyncio
import logging
import os
from typing import Callable

from voicecast.constants import MAX_CHUNK_CHARS, THROTTLE_DELAY_SECONDS
from voicecast.errors import ProcessorStateError
from voicecast.models import (
    COMPLETED,
    FAILED,
    PENDING,
    DialogueUnit,
    ProcessingResult,
    QueueStats,
    VoiceProfile,
    unit_id,
)
from voicecast.parser import chunk_dialogue

logger = logging.getLogger(__name__)

ProgressHandler = Callable[[int, int, DialogueUnit], None]
FailureHandler = Callable[[ProcessingResult], None]
CompleteHandler = Callable[[QueueStats], None]


class TTSProcessor:
    """Turns queued DialogueUnits into audio clips, one at a time.

    The synthesizer is any object with
    ``async synthesize(text, voice_id, settings, filename) -> str | None``
    that raises on failure; the returned path (if any) names the written clip.

    A run processes pending units strictly in queue order. A unit whose
    speaker has no mapping, or whose synthesis raises, is recorded in
    ``failed`` and the run moves on. stop_processing() takes effect before
    the next unit is dispatched; the in-flight call always finishes.
    """

    def __init__(self, synthesizer, throttle_delay: float = THROTTLE_DELAY_SECONDS, file_extension: str = ".mp3"):
        self.synthesizer = synthesizer
        self.throttle_delay = throttle_delay
        self.file_extension = file_extension
        self.queue: list[DialogueUnit] = []
        self.processed: list[ProcessingResult] = []
        self.failed: list[ProcessingResult] = []
        self.current_index = 0
        self.was_cancelled = False
        self._is_processing = False
        self._cancel_event: asyncio.Event | None = None
        self._progress_handlers: list[ProgressHandler] = []
        self._failure_handlers: list[FailureHandler] = []
        self._complete_handlers: list[CompleteHandler] = []

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    # --- Observers ---

    @staticmethod
    def _subscribe(handlers: list, handler) -> Callable[[], None]:
        handlers.append(handler)

        def unsubscribe():
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def on_progress(self, handler: ProgressHandler) -> Callable[[], None]:
        """Call handler(completed, total, unit) after each successful unit."""
        return self._subscribe(self._progress_handlers, handler)

    def on_failure(self, handler: FailureHandler) -> Callable[[], None]:
        """Call handler(result) after each failed unit."""
        return self._subscribe(self._failure_handlers, handler)

    def on_complete(self, handler: CompleteHandler) -> Callable[[], None]:
        """Call handler(stats) when a run ends, completed or cancelled."""
        return self._subscribe(self._complete_handlers, handler)

    def _notify(self, handlers: list, *args) -> None:
        for handler in list(handlers):
            try:
                handler(*args)
            except Exception:
                logger.exception("Observer %r raised", handler)

    # --- Queue ---

    def add_to_queue(
        self,
        speaker: str,
        text: str,
        index: int,
        chunk_index: int | None = None,
        total_chunks: int = 1,
    ) -> DialogueUnit:
        """Append a pending unit. index must follow document order.

        Raises ValueError if a unit with the same id is already queued; use
        retry_failed() to run failed units again.
        """
        if self._is_processing:
            raise ProcessorStateError("Cannot modify the queue while processing")
        uid = unit_id(index, speaker, chunk_index)
        if any(unit.id == uid for unit in self.queue):
            raise ValueError(f"Unit already queued: {uid}")
        unit = DialogueUnit(
            id=uid,
            speaker=speaker,
            text=text,
            original_index=index,
            chunk_index=chunk_index or 0,
            total_chunks=total_chunks,
        )
        self.queue.append(unit)
        return unit

    def queue_dialogue(self, speaker: str, text: str, index: int, max_chars: int = MAX_CHUNK_CHARS) -> list[DialogueUnit]:
        """Queue one dialogue, split into several units if it is too long.

        Split units share the index and get "a", "b", ... id suffixes.
        """
        chunks = chunk_dialogue(text, max_chars)
        if len(chunks) == 1:
            return [self.add_to_queue(speaker, chunks[0], index)]
        if chunks:
            logger.info("Split dialogue %d (%s) into %d chunks", index, speaker, len(chunks))
        return [
            self.add_to_queue(speaker, chunk, index, chunk_index=i, total_chunks=len(chunks))
            for i, chunk in enumerate(chunks)
        ]

    def retry_failed(self) -> int:
        """Return failed units to pending so the next run processes them again.

        Returns the number of units reset.
        """
        if self._is_processing:
            raise ProcessorStateError("Cannot retry while processing")
        retried = self.failed
        self.failed = []
        for result in retried:
            result.unit.status = PENDING
        if retried:
            logger.info("Retrying %d failed units", len(retried))
        return len(retried)

    def get_stats(self) -> QueueStats:
        total = len(self.queue)
        completed = len(self.processed)
        failed = len(self.failed)
        return QueueStats(total=total, completed=completed, failed=failed, remaining=total - completed - failed)

    def results(self) -> list[ProcessingResult]:
        """Processed and failed results in document order."""
        return sorted(
            self.processed + self.failed,
            key=lambda r: (r.unit.original_index, r.unit.chunk_index),
        )

    # --- Run ---

    async def start_processing(self, speaker_mapping: dict[str, VoiceProfile]) -> None:
        """Process every pending unit in the queue.

        Does nothing if a run is already active. Raises ProcessorStateError
        if the queue is empty.
        """
        if self._is_processing:
            logger.warning("Processing already in progress")
            return
        if not self.queue:
            raise ProcessorStateError("Cannot start processing: the queue is empty")

        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event
        self._is_processing = True
        self.was_cancelled = False
        pending = [i for i, unit in enumerate(self.queue) if unit.status == PENDING]
        logger.info("Starting TTS processing of %d units", len(pending))

        try:
            for position, index in enumerate(pending):
                if cancel_event.is_set():
                    self.was_cancelled = True
                    logger.warning("Processing cancelled, %d units left pending", len(pending) - position)
                    break

                self.current_index = index
                await self._process_unit(self.queue[index], speaker_mapping)

                if position < len(pending) - 1:
                    await asyncio.sleep(self.throttle_delay)
        finally:
            self._is_processing = False
            self._cancel_event = None

        stats = self.get_stats()
        logger.info(
            "Processing finished: %d completed, %d failed, %d remaining",
            stats.completed, stats.failed, stats.remaining,
        )
        self._notify(self._complete_handlers, stats)

    def stop_processing(self) -> None:
        """Request cancellation; honoured before the next unit is dispatched."""
        if self._cancel_event is None:
            logger.debug("stop_processing() called with no active run")
            return
        self._cancel_event.set()

    async def _process_unit(self, unit: DialogueUnit, speaker_mapping: dict[str, VoiceProfile]) -> None:
        profile = speaker_mapping.get(unit.speaker)
        if profile is None:
            self._record_failure(unit, f"No voice mapping found for speaker: {unit.speaker}")
            return

        filename = f"{unit.id}{self.file_extension}"
        try:
            path = await self.synthesizer.synthesize(unit.text, profile.voice_id, profile.settings, filename)
        except Exception as e:
            self._record_failure(unit, str(e) or type(e).__name__)
            return

        unit.status = COMPLETED
        self.processed.append(ProcessingResult(unit=unit, filename=os.path.basename(path) if path else filename))
        logger.info("Processed %s", unit.id)
        self._notify(self._progress_handlers, len(self.processed), len(self.queue), unit)

    def _record_failure(self, unit: DialogueUnit, message: str) -> None:
        unit.status = FAILED
        result = ProcessingResult(unit=unit, error_message=message)
        self.failed.append(result)
        logger.error("Failed %s: %s", unit.id, message)
        self._notify(self._failure_handlers, result)
