"""Tests for pipeline orchestration."""

import logging
from pathlib import Path
from unittest.mock import MagicMock, call, patch

import numpy as np
import pytest

from stereoproc.config import OutputConfig, PipelineConfig
from stereoproc.errors import (
    ConfigError,
    DecodeFailedError,
    DirectoryCreateError,
    EndOfSequenceError,
)
from stereoproc.frame_range import FrameRange
from stereoproc.output import ArtifactKind, OutputSink
from stereoproc.pipeline import (
    Pipeline,
    PipelineContext,
    RunSummary,
    build_pipeline_context,
    process_frame,
    process_frame_range,
    run_pipeline,
)
from stereoproc.sources import ImagePair


def make_vrms_reader(frame_count: int) -> MagicMock:
    """VRMS reader mock whose seeks fail past ``frame_count`` frames."""
    reader = MagicMock()
    reader.open_file.return_value = True

    def seek(frame):
        if frame >= frame_count:
            raise IndexError(f"frame {frame} out of range")
        return True

    reader.set_video_position.side_effect = seek
    reader.get_images.return_value = (
        np.zeros((4, 4, 3), dtype=np.uint8),
        np.ones((4, 4, 3), dtype=np.uint8),
    )
    return reader


def written_files(root: Path) -> list[str]:
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())


class TestBuildPipelineContext:
    """Tests for build_pipeline_context()."""

    def test_frames_only(self, image_sequence, tmp_path):
        config = PipelineConfig(
            input_file=image_sequence,
            outputs=OutputConfig(frames=[str(tmp_path / "out_%{f}_%{s}.png")]),
        )
        ctx = build_pipeline_context(config)

        assert ctx.config is config
        assert ctx.rectifier is None
        assert ctx.matcher is None
        assert ctx.reprojector is None

    def test_full(self, image_sequence, stereo_calibration_file, stereo_method_file):
        config = PipelineConfig(
            input_file=image_sequence,
            stereo_calibration=str(stereo_calibration_file),
            stereo_method=str(stereo_method_file),
            outputs=OutputConfig(points=["p.pcd"]),
        )
        ctx = build_pipeline_context(config)

        assert ctx.rectifier is not None
        assert ctx.matcher is not None
        assert ctx.matcher.num_disparities == 16
        np.testing.assert_array_equal(
            ctx.reprojector.Q, ctx.rectifier.reprojection_matrix
        )

    def test_matcher_without_calibration_has_no_reprojector(
        self, image_sequence, stereo_method_file
    ):
        """Reprojection needs a calibration; pre-rectified input only gets disparity."""
        config = PipelineConfig(
            input_file=image_sequence,
            stereo_method=str(stereo_method_file),
            outputs=OutputConfig(disparity=["d.png"]),
        )
        ctx = build_pipeline_context(config)

        assert ctx.matcher is not None
        assert ctx.rectifier is None
        assert ctx.reprojector is None

    def test_invalid_outputs_checked_before_opening_source(self):
        config = PipelineConfig(
            input_file="stereo.avi", outputs=OutputConfig(rectified=["r.png"])
        )
        with patch("stereoproc.pipeline.builder.open_source") as mock_open:
            with pytest.raises(ConfigError, match="requires stereo calibration"):
                build_pipeline_context(config)
            mock_open.assert_not_called()

    def test_missing_calibration_file(self, tmp_path, image_sequence):
        config = PipelineConfig(
            input_file=image_sequence,
            stereo_calibration=str(tmp_path / "missing.yml"),
            outputs=OutputConfig(rectified=["r_%{s}.png"]),
        )
        with pytest.raises(ConfigError, match="not found"):
            build_pipeline_context(config)


class TestProcessFrame:
    """Tests for per-frame stage ordering with mocked collaborators."""

    @pytest.fixture
    def pair(self):
        return ImagePair(
            left=np.zeros((4, 6, 3), dtype=np.uint8),
            right=np.ones((4, 6, 3), dtype=np.uint8),
            frame_idx=7,
        )

    def make_context(self, outputs, matcher=True, rectifier=True, reprojector=True):
        ctx = PipelineContext(
            config=PipelineConfig(input_file="a.avi", outputs=outputs),
            source=MagicMock(),
        )
        if rectifier:
            ctx.rectifier = MagicMock()
            ctx.rectifier.rectify.side_effect = lambda left, right: (left + 10, right + 10)
        if matcher:
            ctx.matcher = MagicMock()
            ctx.matcher.compute_disparity.return_value = (
                np.full((4, 6), 3.0, dtype=np.float32),
                16,
            )
        if reprojector:
            ctx.reprojector = MagicMock()
            ctx.reprojector.reproject.return_value = np.zeros((4, 6, 3), dtype=np.float32)
        return ctx

    def test_stage_order(self, pair):
        outputs = OutputConfig(
            frames=["f_%{s}.png"],
            rectified=["r_%{s}.png"],
            disparity=["d.png", "d.yml"],
            points=["p.pcd"],
        )
        ctx = self.make_context(outputs)
        sink = MagicMock()

        process_frame(pair, {"f": 7}, ctx, sink)

        templates = [c.args[0] for c in sink.write.call_args_list]
        assert templates == [
            "f_%{s}.png",
            "f_%{s}.png",
            "r_%{s}.png",
            "r_%{s}.png",
            "d.png",
            "d.yml",
            "p.pcd",
        ]
        sides = [c.args[1].get("s") for c in sink.write.call_args_list]
        assert sides == ["L", "R", "L", "R", None, None, None]

    def test_rectified_left_is_color_reference(self, pair):
        ctx = self.make_context(OutputConfig(points=["p.pcd"]))
        sink = MagicMock()

        process_frame(pair, {"f": 7}, ctx, sink)

        (points_call,) = sink.write.call_args_list
        artifact = points_call.args[2]
        assert artifact.kind is ArtifactKind.POINTS
        np.testing.assert_array_equal(points_call.kwargs["color_reference"], pair.left + 10)

    def test_disparity_artifact_carries_levels(self, pair):
        ctx = self.make_context(OutputConfig(disparity=["d.png"]), reprojector=False)
        sink = MagicMock()

        process_frame(pair, {"f": 7}, ctx, sink)

        artifact = sink.write.call_args.args[2]
        assert artifact.kind is ArtifactKind.MATRIX
        assert artifact.num_disparities == 16

    def test_without_rectifier_passes_through(self, pair):
        ctx = self.make_context(
            OutputConfig(disparity=["d.png"]), rectifier=False, reprojector=False
        )
        process_frame(pair, {"f": 7}, ctx, MagicMock())

        left, right = ctx.matcher.compute_disparity.call_args.args
        assert left is pair.left
        assert right is pair.right

    def test_without_matcher_skips_disparity_and_points(self, pair):
        ctx = self.make_context(OutputConfig(rectified=["r_%{s}.png"]), matcher=False)
        sink = MagicMock()

        process_frame(pair, {"f": 7}, ctx, sink)

        assert sink.write.call_count == 2
        ctx.reprojector.reproject.assert_not_called()


class TestProcessFrameRange:
    """Tests for process_frame_range() termination policy."""

    def make_context(self, source, tmp_path):
        config = PipelineConfig(
            input_file="stereo.avi",
            outputs=OutputConfig(frames=[str(tmp_path / "f%{f}_%{s}.png")]),
        )
        return PipelineContext(config=config, source=source)

    def test_variables(self, tmp_path):
        source = MagicMock()
        source.get_frame.side_effect = lambda idx: ImagePair(
            np.zeros((2, 2)), np.zeros((2, 2)), idx
        )
        ctx = self.make_context(source, tmp_path)
        sink = MagicMock()

        with patch("stereoproc.pipeline.runner.process_frame") as mock_process:
            count = process_frame_range(FrameRange(4, 3, 10), ctx, sink)

        assert count == 3
        assert source.get_frame.call_args_list == [call(4), call(7), call(10)]
        variables = [c.args[1] for c in mock_process.call_args_list]
        assert variables[1] == {"rangeStart": 4, "rangeEnd": 10, "rangeStep": 3, "f": 7}

    def test_unbounded_range_ends_gracefully(self, tmp_path, caplog):
        source = MagicMock()
        source.get_frame.side_effect = [
            ImagePair(np.zeros((2, 2)), np.zeros((2, 2)), 0),
            EndOfSequenceError("done"),
        ]
        ctx = self.make_context(source, tmp_path)

        with patch("stereoproc.pipeline.runner.process_frame"):
            with caplog.at_level(logging.INFO, logger="stereoproc.pipeline.runner"):
                count = process_frame_range(FrameRange(0, 1, -1), ctx, MagicMock())

        assert count == 1
        assert "Reached end of sequence" in caplog.text

    def test_bounded_range_propagates_end(self, tmp_path):
        source = MagicMock()
        source.get_frame.side_effect = EndOfSequenceError("done")
        ctx = self.make_context(source, tmp_path)

        with pytest.raises(EndOfSequenceError):
            process_frame_range(FrameRange(0, 1, 5), ctx, MagicMock())

    def test_decode_failure_propagates_on_unbounded_range(self, tmp_path):
        source = MagicMock()
        source.get_frame.side_effect = DecodeFailedError("corrupt")
        ctx = self.make_context(source, tmp_path)

        with pytest.raises(DecodeFailedError):
            process_frame_range(FrameRange(0, 1, -1), ctx, MagicMock())


class TestRunPipeline:
    """End-to-end runs on real files and fake captures."""

    def test_image_sequence_frames(self, image_sequence, tmp_path):
        """Three image frames, range 0:2, frame stage only: exactly six files."""
        out_dir = tmp_path / "out"
        config = PipelineConfig(
            input_file=image_sequence,
            frame_ranges=["0:2"],
            outputs=OutputConfig(frames=[str(out_dir / "img_%{f}_%{s}.png")]),
        )

        summary = run_pipeline(config)

        assert written_files(out_dir) == [
            "img_0_L.png",
            "img_0_R.png",
            "img_1_L.png",
            "img_1_R.png",
            "img_2_L.png",
            "img_2_R.png",
        ]
        assert summary == RunSummary(frames_per_range=[3], files_written=6)

    def test_image_sequence_past_end_is_decode_failure(self, image_sequence, tmp_path):
        config = PipelineConfig(
            input_file=image_sequence,
            outputs=OutputConfig(frames=[str(tmp_path / "out" / "%{f}_%{s}.png")]),
        )
        with pytest.raises(DecodeFailedError):
            run_pipeline(config)
        assert len(written_files(tmp_path / "out")) == 6

    def test_write_failure_stops_run_and_keeps_earlier_files(
        self, image_sequence, tmp_path
    ):
        """Frame 1 cannot get its directory; frame 0's files stay, frame 2 is never written."""
        out_dir = tmp_path / "out"
        out_dir.mkdir()
        (out_dir / "frame_1").write_text("not a directory")
        config = PipelineConfig(
            input_file=image_sequence,
            frame_ranges=["0:2"],
            outputs=OutputConfig(frames=[str(out_dir / "frame_%{f}" / "img_%{s}.png")]),
        )

        with pytest.raises(DirectoryCreateError):
            run_pipeline(config)

        assert written_files(out_dir) == [
            "frame_0/img_L.png",
            "frame_0/img_R.png",
            "frame_1",
        ]

    def test_video_unbounded_range_stops_at_end(self, fake_video, tmp_path, caplog):
        """A 4-frame video on the default range processes frames 0-3 and succeeds."""
        fake_video(4)
        out_dir = tmp_path / "out"
        config = PipelineConfig(
            input_file="stereo.avi",
            outputs=OutputConfig(frames=[str(out_dir / "f%{f}_%{s}.png")]),
        )

        with caplog.at_level(logging.INFO):
            summary = run_pipeline(config)

        assert summary.frames_per_range == [4]
        assert summary.files_written == 8
        assert "f3_R.png" in written_files(out_dir)
        assert "Reached end of sequence" in caplog.text

    def test_video_bounded_range_past_end_fails(self, fake_video, tmp_path):
        """A bounded range beyond the end fails after writing frames 0-3."""
        capture = fake_video(4)
        out_dir = tmp_path / "out"
        config = PipelineConfig(
            input_file="stereo.avi",
            frame_ranges=["0:10"],
            outputs=OutputConfig(frames=[str(out_dir / "f%{f}_%{s}.png")]),
        )

        with pytest.raises(EndOfSequenceError):
            run_pipeline(config)

        assert len(written_files(out_dir)) == 8
        assert capture.released

    def test_multiple_ranges(self, fake_video, tmp_path):
        capture = fake_video(10)
        out_dir = tmp_path / "out"
        config = PipelineConfig(
            input_file="stereo.avi",
            frame_ranges=["0:1", "6:2:8", "2:2"],
            outputs=OutputConfig(
                frames=[str(out_dir / "r%{rangeStart}-%{rangeEnd}_f%{f}_%{s}.png")]
            ),
        )

        summary = run_pipeline(config)

        assert summary.frames_per_range == [2, 2, 1]
        assert written_files(out_dir) == [
            "r0-1_f0_L.png",
            "r0-1_f0_R.png",
            "r0-1_f1_L.png",
            "r0-1_f1_R.png",
            "r2-2_f2_L.png",
            "r2-2_f2_R.png",
            "r6-8_f6_L.png",
            "r6-8_f6_R.png",
            "r6-8_f8_L.png",
            "r6-8_f8_R.png",
        ]
        # Only the jump back to frame 2 needs a seek
        assert capture.seeks == [2]

    def test_vrms_unbounded_range(self, tmp_path):
        reader = make_vrms_reader(frame_count=3)
        config = PipelineConfig(
            input_file="rec.vrms",
            outputs=OutputConfig(frames=[str(tmp_path / "%{f}_%{s}.png")]),
        )

        summary = run_pipeline(config, vrms_reader_factory=lambda: reader)

        assert summary.frames_per_range == [3]
        reader.build_seek_table.assert_called_once()

    def test_full_stereo_outputs(
        self, image_sequence, stereo_calibration_file, stereo_method_file, tmp_path
    ):
        out_dir = tmp_path / "out"
        config = PipelineConfig(
            input_file=image_sequence,
            stereo_calibration=str(stereo_calibration_file),
            stereo_method=str(stereo_method_file),
            frame_ranges=["0:1"],
            outputs=OutputConfig(
                rectified=[str(out_dir / "rect_%{f}_%{s}.png")],
                disparity=[
                    str(out_dir / "disp_%{f|03d}.png"),
                    str(out_dir / "disp_%{f|03d}.yml"),
                ],
                points=[
                    str(out_dir / "points_%{f}.pcd"),
                    str(out_dir / "points_%{f}.bin"),
                ],
            ),
        )

        summary = Pipeline(config).run()

        assert summary.files_written == 12
        assert written_files(out_dir) == [
            "disp_000.png",
            "disp_000.yml",
            "disp_001.png",
            "disp_001.yml",
            "points_0.bin",
            "points_0.pcd",
            "points_1.bin",
            "points_1.pcd",
            "rect_0_L.png",
            "rect_0_R.png",
            "rect_1_L.png",
            "rect_1_R.png",
        ]

    def test_config_error_raised_before_output(self, image_sequence, tmp_path):
        config = PipelineConfig(
            input_file=image_sequence,
            outputs=OutputConfig(points=[str(tmp_path / "p.pcd")]),
        )
        with pytest.raises(ConfigError):
            run_pipeline(config)
        assert not (tmp_path / "p.pcd").exists()

    def test_summary_total(self):
        assert RunSummary(frames_per_range=[2, 3]).frames_processed == 5


def test_sink_counts_across_ranges(fake_video, tmp_path):
    fake_video(3)
    config = PipelineConfig(
        input_file="stereo.avi",
        frame_ranges=["0:0", "2:2"],
        outputs=OutputConfig(frames=[str(tmp_path / "%{f}_%{s}.png")]),
    )
    with patch("stereoproc.pipeline.runner.OutputSink", wraps=OutputSink) as mock_sink:
        summary = run_pipeline(config)

    mock_sink.assert_called_once_with()
    assert summary.files_written == 4
