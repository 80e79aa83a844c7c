import asyncio
import os
import stat

import pytest

from audio_insight.audio.base import AudioNormalizer, check_riff_integrity, read_wav_metadata
from audio_insight.audio.factory import build_normalizer
from audio_insight.audio.ffmpeg_normalizer import FfmpegNormalizer, scrub_diagnostic, suffix_for_hint
from audio_insight.errors import AudioTooLongError, ConfigurationError, ConversionError


class PassthroughNormalizer(AudioNormalizer):
    name = "passthrough"

    async def _convert(self, data, hint):
        return data


def _fake_decoder(tmp_path, body: str) -> str:
    """Write an executable that accepts ffmpeg's argument layout.

    ``${10}`` is the input path and ``${20}`` the output path.
    """

    script = tmp_path / "fake-ffmpeg"
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return str(script)


def test_read_wav_metadata(wav_factory):
    metadata = read_wav_metadata(wav_factory(0.25, sample_rate=16000))

    assert metadata.sample_rate == 16000
    assert metadata.channels == 1
    assert metadata.sample_width == 2
    assert metadata.frames == 4000
    assert metadata.duration_seconds == pytest.approx(0.25)


def test_read_wav_metadata_rejects_garbage():
    with pytest.raises(ConversionError):
        read_wav_metadata(b"definitely not a wav file")


@pytest.mark.asyncio
async def test_normalizer_accepts_canonical_wav(wav_factory):
    normalizer = PassthroughNormalizer()

    audio = await normalizer.normalize(wav_factory(0.5), "clip.wav")

    assert audio.metadata.sample_rate == 16000
    assert audio.metadata.channels == 1
    assert audio.metadata.frames > 0
    assert audio.source_format == "clip.wav"


@pytest.mark.asyncio
async def test_normalizer_rejects_empty_input():
    with pytest.raises(ConversionError):
        await PassthroughNormalizer().normalize(b"")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"sample_rate": 44100},
        {"channels": 2},
        {"sample_width": 1},
    ],
)
async def test_normalizer_rejects_non_canonical_output(wav_factory, kwargs):
    with pytest.raises(ConversionError):
        await PassthroughNormalizer().normalize(wav_factory(0.1, **kwargs))


@pytest.mark.asyncio
async def test_normalizer_rejects_zero_frames(wav_factory):
    with pytest.raises(ConversionError):
        await PassthroughNormalizer().normalize(wav_factory(0.0))


@pytest.mark.asyncio
async def test_normalizer_enforces_duration_limit(wav_factory):
    normalizer = PassthroughNormalizer(max_duration_seconds=0.5)

    with pytest.raises(AudioTooLongError):
        await normalizer.normalize(wav_factory(1.0))


@pytest.mark.parametrize(
    "hint,expected",
    [
        ("audio/webm;codecs=opus", ".webm"),
        ("audio/mpeg", ".mp3"),
        ("recording.M4A", ".m4a"),
        ("../../etc/passwd", ""),
        ("weird.name.with-dash", ""),
        (None, ""),
    ],
)
def test_suffix_for_hint(hint, expected):
    assert suffix_for_hint(hint) == expected


def test_scrub_diagnostic_hides_temp_paths_and_truncates():
    text = "/tmp/audio-insight-abc/input.webm: Invalid data\n" + "x" * 5000

    cleaned = scrub_diagnostic(text, "/tmp/audio-insight-abc")

    assert "/tmp/audio-insight-abc" not in cleaned
    assert len(cleaned) == 2000


def test_ffmpeg_command_targets_canonical_format():
    normalizer = FfmpegNormalizer(binary="ffmpeg")

    cmd = normalizer.build_command("in.webm", "out.wav")

    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-i") + 1] == "in.webm"
    assert cmd[cmd.index("-ar") + 1] == "16000"
    assert cmd[cmd.index("-ac") + 1] == "1"
    assert cmd[cmd.index("-acodec") + 1] == "pcm_s16le"
    assert cmd[-1] == "out.wav"
    assert cmd.index("-xerror") < cmd.index("-i")
    assert cmd[cmd.index("-err_detect") + 1] == "explode"
    assert cmd.index("-err_detect") < cmd.index("-i")


@pytest.mark.asyncio
async def test_ffmpeg_missing_binary_is_configuration_error(tmp_path, wav_factory):
    normalizer = FfmpegNormalizer(binary=str(tmp_path / "no-such-ffmpeg"), temp_dir=str(tmp_path))

    with pytest.raises(ConfigurationError):
        await normalizer.normalize(wav_factory(0.1), "audio/wav")


@pytest.mark.asyncio
async def test_ffmpeg_failure_reports_scrubbed_diagnostic(tmp_path, wav_factory):
    workroot = tmp_path / "work"
    workroot.mkdir()
    binary = _fake_decoder(tmp_path, 'echo "${10}: Invalid data found when processing input" >&2\nexit 1')
    normalizer = FfmpegNormalizer(binary=binary, temp_dir=str(workroot))

    with pytest.raises(ConversionError) as excinfo:
        await normalizer.normalize(b"not audio", "clip.webm")

    assert "<tmp>" in excinfo.value.detail
    assert str(workroot) not in excinfo.value.detail
    assert os.listdir(workroot) == []


@pytest.mark.asyncio
async def test_ffmpeg_success_cleans_up_workdir(tmp_path, wav_factory):
    workroot = tmp_path / "work"
    workroot.mkdir()
    binary = _fake_decoder(tmp_path, 'cp "${10}" "${20}"')
    normalizer = FfmpegNormalizer(binary=binary, temp_dir=str(workroot))

    audio = await normalizer.normalize(wav_factory(0.5), "audio/wav")

    assert audio.metadata.frames == 8000
    assert os.listdir(workroot) == []


@pytest.mark.asyncio
async def test_ffmpeg_cancellation_kills_decoder_and_cleans_up(tmp_path, wav_factory):
    workroot = tmp_path / "work"
    workroot.mkdir()
    binary = _fake_decoder(tmp_path, "exec sleep 30")
    normalizer = FfmpegNormalizer(binary=binary, temp_dir=str(workroot))

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(normalizer.normalize(wav_factory(0.1), "audio/wav"), timeout=0.5)

    assert os.listdir(workroot) == []


@pytest.mark.asyncio
async def test_ffmpeg_real_binary_converts_stereo_44k(requires_ffmpeg, tmp_path, wav_factory):
    normalizer = FfmpegNormalizer(temp_dir=str(tmp_path))

    audio = await normalizer.normalize(wav_factory(0.5, sample_rate=44100, channels=2), "audio/wav")

    assert audio.metadata.sample_rate == 16000
    assert audio.metadata.channels == 1
    assert audio.metadata.duration_seconds == pytest.approx(0.5, abs=0.05)
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_ffmpeg_real_binary_rejects_garbage(requires_ffmpeg, tmp_path):
    normalizer = FfmpegNormalizer(temp_dir=str(tmp_path))

    with pytest.raises(ConversionError):
        await normalizer.normalize(b"\x00\x01garbage" * 64, "audio/webm")

    assert os.listdir(tmp_path) == []


def test_build_normalizer_selects_backend(settings_factory):
    assert isinstance(build_normalizer(settings_factory(normalizer="ffmpeg").audio), FfmpegNormalizer)


def test_build_normalizer_rejects_unknown_backend(settings_factory):
    with pytest.raises(ConfigurationError):
        build_normalizer(settings_factory(normalizer="gstreamer").audio)


def _truncated(wav: bytes) -> bytes:
    return wav[: len(wav) // 3]


def test_check_riff_integrity_accepts_complete_and_non_wav_input(wav_factory):
    check_riff_integrity(wav_factory(0.25))
    check_riff_integrity(b"\x1aE\xdf\xa3 webm header bytes")


def test_check_riff_integrity_accepts_unknown_data_size(wav_factory):
    wav = bytearray(wav_factory(0.25))
    data_at = wav.index(b"data")
    wav[data_at + 4 : data_at + 8] = b"\xff\xff\xff\xff"

    check_riff_integrity(bytes(wav)[:-100])


def test_check_riff_integrity_rejects_cut_header():
    with pytest.raises(ConversionError):
        check_riff_integrity(b"RIFF\x24\x00\x00\x00WAVEfmt ")


@pytest.mark.asyncio
async def test_normalizer_rejects_truncated_wav_body(wav_factory):
    with pytest.raises(ConversionError) as excinfo:
        await PassthroughNormalizer().normalize(_truncated(wav_factory(1.0, sample_rate=44100)), "clip.wav")

    assert "truncated" in str(excinfo.value)


@pytest.mark.asyncio
async def test_ffmpeg_rejects_truncated_input_before_decoding(tmp_path, wav_factory):
    workroot = tmp_path / "work"
    workroot.mkdir()
    marker = tmp_path / "decoder-ran"
    binary = _fake_decoder(tmp_path, f'touch "{marker}"\ncp "${{10}}" "${{20}}"')
    normalizer = FfmpegNormalizer(binary=binary, temp_dir=str(workroot))

    with pytest.raises(ConversionError):
        await normalizer.normalize(_truncated(wav_factory(1.0)), "audio/wav")

    assert not marker.exists()
    assert os.listdir(workroot) == []


@pytest.mark.asyncio
async def test_ffmpeg_rejects_truncated_decoder_output(tmp_path, wav_factory):
    workroot = tmp_path / "work"
    workroot.mkdir()
    binary = _fake_decoder(tmp_path, 'head -c 5000 "${10}" > "${20}"')
    normalizer = FfmpegNormalizer(binary=binary, temp_dir=str(workroot))

    with pytest.raises(ConversionError):
        await normalizer.normalize(wav_factory(1.0), "audio/wav")

    assert os.listdir(workroot) == []


@pytest.mark.asyncio
async def test_ffmpeg_real_binary_rejects_truncated_wav(requires_ffmpeg, tmp_path, wav_factory):
    normalizer = FfmpegNormalizer(temp_dir=str(tmp_path))

    with pytest.raises(ConversionError):
        await normalizer.normalize(_truncated(wav_factory(1.0, sample_rate=44100)), "audio/wav")

    assert os.listdir(tmp_path) == []
