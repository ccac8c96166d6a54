"""Transcription and translation of extracted audio into a subtitle file."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from openai import OpenAI, OpenAIError

from ..errors import GenerationError, TranscriptionError, TranslationUnavailableError
from ..models import TranslationOutcome

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "ar": "Arabic",
    "hi": "Hindi",
}

# One cue over a fixed interval; per-sentence timing is not produced.
SUBTITLE_TEMPLATE = "1\n00:00:00,000 --> 00:01:00,000\n{text}\n"


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.lower(), code)


def write_subtitle_file(text: str, output_path: Path) -> Path:
    output_path.write_text(SUBTITLE_TEMPLATE.format(text=text.strip()), encoding="utf-8")
    return output_path


def subtitle_path_for(audio_path: Path) -> Path:
    return audio_path.with_name(f"{audio_path.stem}_translated.srt")


class Translator:
    """Sends audio to the transcription API and text to the chat API."""

    def __init__(
        self,
        api_key: str | None,
        transcription_model: str = "whisper-1",
        translation_model: str = "gpt-4o-mini",
        timeout: float = 120,
    ):
        self.api_key = api_key
        self.transcription_model = transcription_model
        self.translation_model = translation_model
        self.timeout = timeout
        self._client: OpenAI | None = None

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> OpenAI:
        if not self.api_key:
            raise TranslationUnavailableError("OPENAI_API_KEY environment variable is not set")
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def _transcribe(self, audio_path: Path, source_language: str | None) -> tuple[str, str | None]:
        kwargs = {"model": self.transcription_model, "response_format": "verbose_json"}
        if source_language:
            kwargs["language"] = source_language
        try:
            with audio_path.open("rb") as audio_stream:
                response = self.client.audio.transcriptions.create(file=audio_stream, **kwargs)
        except (OpenAIError, OSError) as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e
        return (response.text or "").strip(), getattr(response, "language", None)

    def _translate(self, text: str, target_language: str) -> str:
        try:
            completion = self.client.chat.completions.create(
                model=self.translation_model,
                messages=[
                    {
                        "role": "system",
                        "content": (
                            f"Translate the following text to {language_name(target_language)}. "
                            "Maintain the timing and structure for subtitles."
                        ),
                    },
                    {"role": "user", "content": text},
                ],
            )
        except OpenAIError as e:
            raise GenerationError(f"Translation request failed: {e}") from e
        translated = (completion.choices[0].message.content or "").strip() if completion.choices else ""
        if not translated:
            logger.warning("Translation returned no text, keeping the transcript")
            return text
        return translated

    def _needs_translation(self, target: str, source: str | None, detected: str | None) -> bool:
        if source:
            return target.lower() != source.lower()
        if detected:
            # Detected language comes back as a name ("spanish") or a code.
            return detected.lower() not in (target.lower(), language_name(target).lower())
        return True

    async def transcribe_and_translate(
        self,
        audio_path: Path,
        target_language: str,
        source_language: str | None = None,
    ) -> TranslationOutcome:
        """
        Transcribe the audio, translate it if needed and write a subtitle file.

        Raises:
            TranslationUnavailableError: no credential is configured
            TranscriptionError, GenerationError: the API calls failed
        """
        if not self.available:
            raise TranslationUnavailableError("OPENAI_API_KEY environment variable is not set")

        transcript, detected = await asyncio.to_thread(self._transcribe, audio_path, source_language)
        logger.info(f"Transcribed {audio_path.name}: {len(transcript)} chars, language {detected or source_language}")

        text = transcript
        if self._needs_translation(target_language, source_language, detected):
            text = await asyncio.to_thread(self._translate, transcript, target_language)

        subtitle_path = write_subtitle_file(text, subtitle_path_for(audio_path))
        return TranslationOutcome(translated_text=text, subtitle_artifact_path=str(subtitle_path))
