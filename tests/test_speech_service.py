"""
Tests for SpeechService, the per-request pipeline, with fake engine and
media tool collaborators (see conftest.py).
"""
import asyncio

import pytest

from conftest import FAKE_MP3_DURATION, FakeSynthesizer, FakeTranscoder, make_service, make_settings, temp_files
from t2a.services.errors import ErrorCode, SynthesisFailure, TranscodeFailure, ValidationError
from t2a.services.speech_service import (
    format_duration_floor,
    format_duration_rounded,
    utc_timestamp,
)
from t2a.services.validators import AudioFormat
from t2a.utils.audio import wav_profile


def _render(service, body):
    request = service.validate(body)

    async def run():
        async with service.artifacts.scope() as artifacts:
            audio = await service.render(request, artifacts)
            data = await service.read_bytes(audio)
            return audio, data, artifacts

    return asyncio.run(run())


class TestFormatting:
    @pytest.mark.parametrize("seconds,expected", [(0.0, "0s"), (1.4, "1s"), (1.6, "2s"), (2.5, "3s"), (0.49, "0s")])
    def test_rounded(self, seconds, expected):
        assert format_duration_rounded(seconds) == expected

    @pytest.mark.parametrize("seconds,expected", [(0.0, "0s"), (2.9, "2s"), (3.0, "3s")])
    def test_floor(self, seconds, expected):
        assert format_duration_floor(seconds) == expected

    def test_timestamp_format(self):
        ts = utc_timestamp()
        assert ts.endswith("Z")
        assert "T" in ts
        assert len(ts.split(".")[-1]) == 4  # milliseconds + Z


class TestRender:
    def test_mp3(self, service):
        audio, data, artifacts = _render(service, {"text": "Hello world", "lang": "english", "file": "mp3"})
        assert audio.filename == "t2a_1.mp3"
        assert audio.index == 1
        assert audio.output_format is AudioFormat.MP3
        assert audio.content_type == "audio/mpeg"
        assert audio.duration == FAKE_MP3_DURATION
        assert audio.duration_formatted == "2s"
        assert audio.size == len(data)
        assert audio.language == "en"
        assert audio.language_name == "English"
        assert audio.text_length == 11
        assert data.startswith(b"ID3")
        assert set(audio.timings_s) == {"synthesize", "probe", "total"}
        assert service.transcoder.transcoded == []
        # released by the scope on exit
        assert artifacts.released
        assert temp_files(service) == []

    def test_wav_is_transcoded_to_profile(self, service):
        audio, data, _ = _render(service, {"text": "नमस्ते", "lang": "hindi", "file": "wav"})
        assert audio.filename == "t2a_1.wav"
        assert audio.content_type == "audio/wav"
        assert data[:4] == b"RIFF"
        assert audio.duration == pytest.approx(0.75, abs=1e-3)
        assert "transcode" in audio.timings_s
        (src, dst, fmt), = service.transcoder.transcoded
        assert src.suffix == ".mp3" and dst.suffix == ".wav"
        assert src.stem == dst.stem
        assert fmt is AudioFormat.WAV

    def test_engine_receives_code(self, service):
        _render(service, {"text": "Hola", "lang": "spanish"})
        text, code, dest = service.synthesizer.calls[0]
        assert (text, code) == ("Hola", "es")
        assert dest.suffix == ".mp3"

    def test_indices_increment(self, service):
        names = [_render(service, {"text": f"n{i}"})[0].filename for i in range(3)]
        assert names == ["t2a_1.mp3", "t2a_2.mp3", "t2a_3.mp3"]
        assert service.health()["current_file_index"] == 3

    def test_rejected_request_does_not_consume_index(self, service):
        with pytest.raises(ValidationError):
            service.validate({"text": "hi", "lang": "klingon"})
        assert _render(service, {"text": "hi"})[0].index == 1

    def test_custom_prefix(self, tmp_path):
        service = make_service(make_settings(tmp_path, naming={"filename_prefix": "speech"}))
        assert _render(service, {"text": "hi", "file": "wav"})[0].filename == "speech_1.wav"

    def test_probe_failure_uses_fallback(self, settings):
        service = make_service(settings, transcoder=FakeTranscoder(probe_fails=True, duration_fallback_s=5.0))
        audio, _, _ = _render(service, {"text": "hello"})
        assert audio.duration == 5.0
        assert audio.duration_formatted == "5s"

    def test_file_info(self, service):
        audio, _, _ = _render(service, {"text": "Hello", "lang": "ar"})
        info = audio.file_info()
        assert info["filename"] == "t2a_1.mp3"
        assert info["duration"] == 1.6
        assert info["duration_formatted"] == "2s"
        assert info["format"] == "mp3"
        assert info["language"] == "ar"
        assert info["language_name"] == "Arabic"
        assert info["text_length"] == 5
        assert info["timestamp"].endswith("Z")


class TestFailures:
    def test_synthesis_failure_releases_and_tags_stage(self, settings):
        service = make_service(settings, synthesizer=FakeSynthesizer(fail=True))
        with pytest.raises(SynthesisFailure) as exc:
            _render(service, {"text": "hello"})
        assert exc.value.code == ErrorCode.SYNTHESIS_FAILED
        assert exc.value.details["stage"] == "synthesizing"
        assert temp_files(service) == []

    def test_transcode_failure_releases_partial_output(self, settings):
        service = make_service(settings, transcoder=FakeTranscoder(fail=True))
        with pytest.raises(TranscodeFailure) as exc:
            _render(service, {"text": "hello", "file": "wav"})
        assert exc.value.details["stage"] == "transcoding"
        assert temp_files(service) == []

    def test_failed_request_keeps_its_index(self, settings):
        service = make_service(settings, synthesizer=FakeSynthesizer(fail=True))
        with pytest.raises(SynthesisFailure):
            _render(service, {"text": "hello"})
        assert service.sequence.current == 1


class TestPersistAndProbe:
    def test_persist_and_probe_file(self, service):
        request = service.validate({"text": "keep me", "file": "wav"})

        async def run():
            async with service.artifacts.scope() as artifacts:
                audio = await service.render(request, artifacts)
                record = await service.persist(audio)
            return audio, record

        audio, record = asyncio.run(run())
        assert record.filename == audio.filename
        assert record.url == f"/audio/{audio.filename}"
        assert temp_files(service) == []
        assert wav_profile(record.path).sample_rate == 22050

        path, seconds = asyncio.run(service.probe_file(audio.filename))
        assert path == record.path
        assert seconds == pytest.approx(0.75, abs=1e-3)

    def test_probe_file_in_temp_dir(self, service):
        service.artifacts.temp_dir.mkdir(parents=True)
        (service.artifacts.temp_dir / "abc.mp3").write_bytes(b"ID3")
        _, seconds = asyncio.run(service.probe_file("abc.mp3"))
        assert seconds == FAKE_MP3_DURATION

    def test_probe_file_missing(self, service):
        from t2a.services.errors import ArtifactNotFound

        with pytest.raises(ArtifactNotFound):
            asyncio.run(service.probe_file("t2a_99.mp3"))
        with pytest.raises(ArtifactNotFound):
            asyncio.run(service.probe_file("../etc/passwd"))


def test_health(service):
    h = service.health()
    assert h["status"] == "ok"
    assert h["temp_files"] == 0
    assert h["saved_files"] == 0
    assert h["current_file_index"] == 0
