"""
Metadata Extractor - Unit Tests

ffprobe is replaced by FakeRunner returning canned JSON, or by a fake tool
script run through the real ProcessRunner.

============================================================================
TESTS
============================================================================
1. Frame rate parsing (num/den, plain number, zero denominator)
2. JSON fixture → fps / duration / frame count
3. nb_read_frames preferred over nb_frames
4. Failure classification (missing tool, missing file, non-zero exit,
   bad JSON, no video stream, cancellation)
5. Progress: start, liveness heartbeat, completion
6. Cancelling a running ffprobe kills it (POSIX fake tool script)
============================================================================
"""

import asyncio
import json
from itertools import islice

import pytest

from getframe.errors import ErrorCode, SourceNotFoundError, ToolFailedError
from getframe.execution.cancellation import CancellationToken
from getframe.execution.process import ProcessOutcome, ProcessRunner
from getframe.metadata import (
    MetadataExtractor,
    MetadataParseError,
    VideoMetadata,
    analyzing_heartbeat,
    apply_probe_data,
    format_file_size,
    parse_frame_rate,
)

from conftest import FakeRunner, leftover_files, run, wait_gone


def probe_json(**stream_overrides) -> str:
    stream = {
        "codec_type": "video",
        "codec_name": "h264",
        "width": 1920,
        "height": 1080,
        "r_frame_rate": "30000/1001",
        "duration": "10.0",
        "nb_read_frames": "299",
        "nb_frames": "300",
    }
    stream.update(stream_overrides)
    stream = {k: v for k, v in stream.items() if v is not None}
    return json.dumps({
        "streams": [{"codec_type": "audio", "codec_name": "aac"}, stream],
        "format": {"duration": "12.5"},
    })


@pytest.fixture
def prober(tmp_path):
    path = tmp_path / "bin" / "ffprobe"
    path.parent.mkdir(exist_ok=True)
    path.write_text("")
    return str(path)


class TestParseFrameRate:

    @pytest.mark.parametrize("label,expected", [
        ("30000/1001", 30000 / 1001),
        ("25/1", 25.0),
        ("24", 24.0),
        ("29.97", 29.97),
        ("30/0", 0.0),
        ("0/0", 0.0),
        ("abc", 0.0),
        ("1/2/3", 0.0),
    ])
    def test_parse(self, label, expected):
        assert parse_frame_rate(label) == pytest.approx(expected)


class TestApplyProbeData:

    def test_fixture_values(self):
        """
        GIVEN: r_frame_rate 30000/1001, duration 10.0, nb_read_frames 299
        WHEN: Mapped onto a record
        THEN: fps ≈ 29.97, duration 10000 ms, 299 frames
        """
        metadata = apply_probe_data(VideoMetadata(file_path="clip.mp4"), json.loads(probe_json()))

        assert metadata.fps == pytest.approx(29.97, abs=0.001)
        assert metadata.duration_ms == pytest.approx(10000)
        assert metadata.frame_count == 299
        assert (metadata.width, metadata.height) == (1920, 1080)
        assert metadata.frame_rate_label == "30000/1001"
        assert metadata.codec_name == "h264"

    def test_declared_frames_used_when_not_counted(self):
        data = json.loads(probe_json(nb_read_frames=None))
        assert apply_probe_data(VideoMetadata(file_path="a"), data).frame_count == 300

    def test_frame_count_unknown(self):
        data = json.loads(probe_json(nb_read_frames=None, nb_frames=None))
        assert apply_probe_data(VideoMetadata(file_path="a"), data).frame_count == 0

    def test_format_duration_fallback(self):
        data = json.loads(probe_json(duration=None))
        assert apply_probe_data(VideoMetadata(file_path="a"), data).duration_ms == pytest.approx(12500)

    def test_missing_frame_rate(self):
        data = json.loads(probe_json(r_frame_rate=None))
        metadata = apply_probe_data(VideoMetadata(file_path="a"), data)
        assert metadata.frame_rate_label == "N/A"
        assert metadata.fps == 0.0

    def test_no_video_stream(self):
        with pytest.raises(MetadataParseError):
            apply_probe_data(VideoMetadata(file_path="a"), {"streams": [{"codec_type": "audio"}]})

    @pytest.mark.parametrize("data", [[], "text", {"streams": "nope"}])
    def test_unexpected_shape(self, data):
        with pytest.raises(MetadataParseError):
            apply_probe_data(VideoMetadata(file_path="a"), data)


class TestHeartbeat:

    def test_bounces_between_bounds(self):
        percents = [p for p, _ in islice(analyzing_heartbeat(), 60)]

        assert percents[:3] == [52, 54, 56]
        assert max(percents) == 90
        assert min(percents) == 50
        assert percents[percents.index(90) + 1] == 88

    def test_dots_cycle(self):
        messages = [m for _, m in islice(analyzing_heartbeat(), 4)]
        assert [m.count(".") for m in messages] == [3, 2, 1, 3]
        assert messages[0].startswith("Analyzing video metadata")


class TestMetadataExtractor:

    def test_success(self, prober, video_file, config):
        runner = FakeRunner(ProcessOutcome(exit_code=0, stdout=probe_json()))
        events = []

        metadata = run(MetadataExtractor(runner, config).extract(str(video_file), prober, events.append))

        assert metadata.ok
        assert metadata.error_code == ErrorCode.NONE
        assert metadata.frame_count == 299
        assert metadata.file_size_bytes == 2048
        assert runner.calls[0][0] == prober
        assert runner.last_arguments[-1].endswith("clip.mp4")
        assert "-count_frames" in runner.last_arguments
        assert events[0].percent == 0
        assert events[-1].percent == 100

    def test_prober_path_unset(self, video_file, config):
        runner = FakeRunner()

        metadata = run(MetadataExtractor(runner, config).extract(str(video_file), None))

        assert metadata.error_code == ErrorCode.PROBER_NOT_FOUND
        assert runner.calls == []

    def test_prober_missing(self, tmp_path, video_file, config):
        metadata = run(MetadataExtractor(FakeRunner(), config).extract(
            str(video_file), str(tmp_path / "nowhere" / "ffprobe")
        ))
        assert metadata.error_code == ErrorCode.PROBER_NOT_FOUND

    def test_source_missing(self, tmp_path, prober, config):
        metadata = run(MetadataExtractor(FakeRunner(), config).extract(str(tmp_path / "missing.mp4"), prober))

        assert metadata.error_code == ErrorCode.FILE_NOT_FOUND
        with pytest.raises(SourceNotFoundError):
            metadata.raise_for_error()

    def test_invalid_path(self, prober, config):
        metadata = run(MetadataExtractor(FakeRunner(), config).extract("bad\0path.mp4", prober))
        assert metadata.error_code == ErrorCode.FILE_NOT_FOUND

    def test_missing_prober_reported_before_invalid_path(self, tmp_path, config):
        runner = FakeRunner()

        metadata = run(MetadataExtractor(runner, config).extract(
            "bad\0path.mp4", str(tmp_path / "nowhere" / "ffprobe")
        ))

        assert metadata.error_code == ErrorCode.PROBER_NOT_FOUND
        assert metadata.file_path == "bad\0path.mp4"
        assert runner.calls == []

    def test_non_zero_exit_keeps_defaults(self, prober, video_file, config):
        """
        GIVEN: ffprobe exits non-zero
        WHEN: Metadata is extracted
        THEN: PROBER_FAILED with stderr in the message; dimensions and count stay 0
        """
        runner = FakeRunner(ProcessOutcome(exit_code=1, stderr="Invalid data found when processing input"))

        metadata = run(MetadataExtractor(runner, config).extract(str(video_file), prober))

        assert metadata.error_code == ErrorCode.PROBER_FAILED
        assert "Invalid data found" in metadata.status_message
        assert (metadata.width, metadata.height, metadata.frame_count) == (0, 0, 0)
        with pytest.raises(ToolFailedError):
            metadata.raise_for_error()

    def test_unparsable_json(self, prober, video_file, config):
        runner = FakeRunner(ProcessOutcome(exit_code=0, stdout="{not json"))
        metadata = run(MetadataExtractor(runner, config).extract(str(video_file), prober))
        assert metadata.error_code == ErrorCode.PROBER_FAILED

    def test_no_video_stream(self, prober, video_file, config):
        runner = FakeRunner(ProcessOutcome(exit_code=0, stdout=json.dumps({"streams": []})))
        metadata = run(MetadataExtractor(runner, config).extract(str(video_file), prober))
        assert metadata.error_code == ErrorCode.METADATA_RETRIEVAL_FAILED

    def test_unexpected_exception_is_captured(self, prober, video_file, config):
        def boom(arguments):
            raise RuntimeError("runner exploded")

        metadata = run(MetadataExtractor(FakeRunner(handler=boom), config).extract(str(video_file), prober))

        assert metadata.error_code == ErrorCode.PROBER_FAILED
        assert "runner exploded" in metadata.status_message

    def test_cancelled_outcome(self, prober, video_file, config):
        runner = FakeRunner(ProcessOutcome(was_cancelled=True))

        metadata = run(MetadataExtractor(runner, config).extract(str(video_file), prober))

        assert metadata.error_code == ErrorCode.OPERATION_CANCELLED
        assert metadata.frame_count == 0

    def test_cancelled_before_start(self, prober, video_file, config):
        token = CancellationToken()
        token.cancel()
        runner = FakeRunner()

        metadata = run(MetadataExtractor(runner, config).extract(str(video_file), prober, cancel_token=token))

        assert metadata.error_code == ErrorCode.OPERATION_CANCELLED
        assert runner.calls == []

    def test_heartbeat_while_waiting(self, prober, video_file, config):
        async def slow_probe(arguments):
            await asyncio.sleep(0.2)
            return ProcessOutcome(exit_code=0, stdout=probe_json())

        events = []
        metadata = run(MetadataExtractor(FakeRunner(handler=slow_probe), config).extract(
            str(video_file), prober, events.append
        ))

        assert metadata.ok
        heartbeat = [e for e in events if e.message.startswith("Analyzing video metadata")]
        assert heartbeat
        assert all(50 <= e.percent <= 90 for e in heartbeat)
        assert [e.percent for e in events][-2:] == [95, 100]

    def test_requires_runner(self):
        with pytest.raises(ValueError):
            MetadataExtractor(None)


class TestVideoMetadata:

    def test_info_text(self):
        metadata = VideoMetadata(
            file_path="clip.mp4",
            width=1920,
            height=1080,
            duration_ms=10000,
            frame_rate_label="30/1",
            fps=30.0,
            frame_count=300,
            file_size_bytes=2621440,
        )

        assert metadata.build_info_text() == (
            "1920x1080, 00:00:10.299, Frames [300], Framerate 30/1 (FPS30), File Size 2.5 MB"
        )

    @pytest.mark.parametrize("size,expected", [
        (512, "512 B"),
        (1536, "1.5 KB"),
        (1048576, "1 MB"),
        (5 * 1024 ** 4, "5120 GB"),
    ])
    def test_format_file_size(self, size, expected):
        assert format_file_size(size) == expected

    def test_blank_path_rejected(self):
        with pytest.raises(ValueError):
            VideoMetadata(file_path="   ")

    def test_negative_dimensions_rejected(self):
        metadata = VideoMetadata(file_path="a")
        with pytest.raises(ValueError):
            metadata.width = -1


@pytest.mark.posix
class TestMetadataExtractorWithRealRunner:

    def test_cancel_from_heartbeat_kills_prober(self, make_tool, video_file, config, temp_dir, tmp_path):
        """
        GIVEN: An ffprobe that never finishes
        WHEN: The caller cancels from a heartbeat update once ffprobe runs
        THEN: OPERATION_CANCELLED, ffprobe is gone and the heartbeat stops
        """
        pid_file = tmp_path / "ffprobe.pid"
        target = str(pid_file)
        staging = target + ".tmp"
        ffprobe = make_tool("ffprobe", f"""
            import os, time
            with open({staging!r}, "w") as f:
                f.write(str(os.getpid()))
            os.replace({staging!r}, {target!r})
            time.sleep(60)
        """)
        token = CancellationToken()
        events = []
        cancelled_at = []

        def on_progress(event):
            events.append(event)
            if event.percent >= 50 and pid_file.exists() and not token.cancelled:
                cancelled_at.append(len(events))
                token.cancel()

        metadata = run(MetadataExtractor(ProcessRunner(), config).extract(
            str(video_file), str(ffprobe), on_progress, token
        ))

        assert metadata.error_code == ErrorCode.OPERATION_CANCELLED
        assert metadata.status_message == "Operation was cancelled."
        assert metadata.frame_count == 0
        assert wait_gone(int(pid_file.read_text()))
        assert not [e for e in events[cancelled_at[0]:] if e.message.startswith("Analyzing")]
        assert leftover_files(temp_dir) == []
