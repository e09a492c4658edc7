"""Audio result factories for test data generation."""

from proof_of_build.clients.base import AudioResult

# Minimal MP3-looking payload (ID3 tag header followed by filler)
FAKE_AUDIO = b"ID3\x04\x00fake-mp3-bytes"


def create_audio_result(audio: bytes = FAKE_AUDIO, content_type: str = "audio/mpeg") -> AudioResult:
    return AudioResult(audio=audio, content_type=content_type)
