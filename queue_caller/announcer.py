from __future__ import annotations

# Audio announcer: a bell, then a spoken "Nomor antrian ..., silakan menuju ...".
#
# Two audio backends are involved:
# - BellTone synthesizes a short multi-harmonic bell with numpy and plays it
#   through sounddevice (non-blocking).
# - Pyttsx3Speech speaks the announcement with pyttsx3. `runAndWait()` blocks,
#   so it runs in the loop's default executor; awaiting it is our "utterance
#   finished" callback.
#
# Whatever happens, `play()` returns normally: a failing or missing audio
# device must never stall the sequencer.

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol

import numpy as np

from .models import AnnouncementJob
from .speech import announcement_text

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[], Any]

BELL_FREQUENCIES = (830.0, 1245.0, 1661.0, 2093.0)
BELL_GAINS = (1.0, 0.6, 0.4, 0.3)


class ToneBackend(Protocol):
    def play(self) -> None: ...


class SpeechBackend(Protocol):
    def speak(self, text: str) -> Awaitable[None]: ...


def bell_samples(*, sample_rate: int = 44100, seconds: float = 1.0, volume: float = 0.3) -> np.ndarray:
    """Bell-like tone: four sine harmonics decaying exponentially to ~1 %."""
    t = np.arange(int(sample_rate * seconds), dtype=np.float32) / sample_rate
    # Decay from `volume` down to 0.01 over `seconds`.
    decay = np.exp(np.log(0.01 / volume) * t / seconds).astype(np.float32)
    wave = np.zeros_like(t)
    for freq, gain in zip(BELL_FREQUENCIES, BELL_GAINS):
        wave += gain * np.sin(2 * np.pi * freq * t)
    wave *= volume * decay
    # Keep the sum of harmonics inside [-1, 1].
    return (wave / sum(BELL_GAINS)).astype(np.float32)


class BellTone:
    def __init__(self, *, sample_rate: int = 44100) -> None:
        self.sample_rate = sample_rate
        self._samples = bell_samples(sample_rate=sample_rate)

    def play(self) -> None:
        import sounddevice as sd

        sd.play(self._samples, self.sample_rate)


class Pyttsx3Speech:
    """Speech through the platform TTS engine (SAPI5, NSSpeech, eSpeak)."""

    def __init__(self, *, language: str = "id", rate_factor: float = 0.9) -> None:
        self.language = language
        self.rate_factor = rate_factor
        self._engine: Any = None

    def _get_engine(self) -> Any:
        if self._engine is None:
            import pyttsx3

            engine = pyttsx3.init()
            for voice in engine.getProperty("voices") or []:
                languages = [str(lang) for lang in (getattr(voice, "languages", None) or [])]
                if any(self.language in lang for lang in languages) or self.language in str(voice.id):
                    engine.setProperty("voice", voice.id)
                    break
            rate = engine.getProperty("rate")
            if isinstance(rate, (int, float)):
                engine.setProperty("rate", int(rate * self.rate_factor))
            self._engine = engine
        return self._engine

    def _speak_blocking(self, text: str) -> None:
        engine = self._get_engine()
        engine.say(text)
        engine.runAndWait()

    async def speak(self, text: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._speak_blocking, text)


class AudioAnnouncer:
    """Plays one announcement at a time; the sequencer guarantees exclusivity."""

    def __init__(
        self,
        *,
        tone: ToneBackend | None = None,
        speech: SpeechBackend | None = None,
        enabled: bool = False,
        bell_delay: float = 0.5,
        disabled_delay: float = 0.7,
    ) -> None:
        self.tone = tone
        self.speech = speech
        self.enabled = enabled
        self.bell_delay = bell_delay
        self.disabled_delay = disabled_delay

    def enable(self) -> None:
        self.enabled = True
        logger.info("audio enabled")

    def disable(self) -> None:
        self.enabled = False
        logger.info("audio disabled")

    async def play(self, job: AnnouncementJob, on_complete: CompletionCallback | None = None) -> None:
        try:
            if self.enabled:
                await self._announce(job)
            else:
                await asyncio.sleep(self.disabled_delay)
        finally:
            if on_complete is not None:
                on_complete()

    async def _announce(self, job: AnnouncementJob) -> None:
        if self.tone is not None:
            try:
                self.tone.play()
            except Exception:
                logger.warning("bell playback failed", exc_info=True)
        await asyncio.sleep(self.bell_delay)

        if self.speech is None:
            logger.info("speech synthesis not available, skipping %s", job.ticket_number)
            return

        text = announcement_text(job.ticket_number, job.counter_label)
        logger.debug("speaking: %s", text)
        try:
            await self.speech.speak(text)
        except Exception:
            # An erroring utterance counts as finished.
            logger.warning("speech synthesis failed for %s", job.ticket_number, exc_info=True)
