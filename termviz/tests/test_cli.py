"""
Tests for argument handling and the run() lifecycle (exit codes, terminal restore).
"""

import io
import threading
from unittest.mock import patch

import numpy as np
import pytest

from termviz.capture import CaptureError
from termviz.cli import (
    EXIT_CAPTURE_FAILED,
    EXIT_OK,
    build_parser,
    config_from_args,
    main,
    run,
)
from termviz.config import VisualizerConfig
from termviz.pipeline import VisualizerPipeline
from termviz.spectrograph import BarSpectrograph, Colors
from termviz.terminal import TerminalSession

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeCapture:
    """Stands in for AudioCapture; pushes scripted blocks when started."""

    def __init__(self, buffer, blocks=(), error=None, start_error=None, **kwargs):
        self.buffer = buffer
        self.blocks = list(blocks)
        self.error = error
        self.start_error = start_error
        self.kwargs = kwargs
        self.stopped = False

    def start(self):
        if self.start_error is not None:
            raise self.start_error
        for block in self.blocks:
            self.buffer.put(0.0, block)
        if self.error is not None:
            self.buffer.fail(self.error)

    def stop(self):
        self.stopped = True


def _parse(*argv):
    return config_from_args(build_parser().parse_args(list(argv)))


def _run_with(factory, config=None, stop_after=None):
    config = config or VisualizerConfig(glyph="#", fixed_size=(8, 4))
    stream = io.StringIO()
    session = TerminalSession(config.font_colour, stream=stream)
    pipeline = VisualizerPipeline(
        config, spectrograph=BarSpectrograph(glyph=config.glyph, stream=stream)
    )
    stop_event = threading.Event()
    if stop_after is not None:
        threading.Timer(stop_after, stop_event.set).start()
    code = run(config, capture_factory=factory, session=session, pipeline=pipeline, stop_event=stop_event)
    return code, stream.getvalue(), pipeline


# ---------------------------------------------------------------------------
# Option handling
# ---------------------------------------------------------------------------


class TestConfigFromArgs:
    def test_defaults(self):
        assert _parse() == VisualizerConfig()

    def test_all_options(self):
        config = _parse(
            "-t", "#", "-c", "255,0,0", "-r", "10,70", "-s", "80x24",
            "-a", "Spotify", "-a", "VLC", "--channel", "1", "--half-window",
        )
        assert config.glyph == "#"
        assert config.font_colour == "\033[38;5;196m"
        assert config.db_range == (10.0, 70.0)
        assert config.fixed_size == (80, 24)
        assert config.apps == ("spotify", "vlc")
        assert config.channel == 1
        assert config.half_window is True

    @pytest.mark.parametrize(
        "argv",
        [
            ("-t", "ab"),
            ("-c", "300,0,0"),
            ("-r", "60,0"),
            ("-r", "low,high"),
            ("-s", "80by24"),
        ],
    )
    def test_malformed_values_fall_back(self, argv):
        assert _parse(*argv) == VisualizerConfig()

    def test_cli_overrides_base(self):
        base = VisualizerConfig(glyph="*", db_range=(5.0, 50.0))
        config = config_from_args(build_parser().parse_args(["-t", "#"]), base)
        assert config.glyph == "#"
        assert config.db_range == (5.0, 50.0)


# ---------------------------------------------------------------------------
# run() lifecycle
# ---------------------------------------------------------------------------


class TestRun:
    def test_interrupt_exits_zero_and_restores_terminal(self):
        def factory(buffer, **kwargs):
            return FakeCapture(buffer, blocks=[np.zeros(256, dtype=np.float32)], **kwargs)

        code, output, pipeline = _run_with(factory, stop_after=0.2)

        assert code == EXIT_OK
        assert output.startswith(Colors.CLEAR_SCREEN + Colors.HIDE_CURSOR)
        assert output.endswith(Colors.SHOW_CURSOR + Colors.SET_DEFAULT + "\n")
        assert pipeline.frames_processed == 1

    def test_stream_error_exits_nonzero_and_restores(self):
        def factory(buffer, **kwargs):
            return FakeCapture(buffer, error=CaptureError("Stream stopped with error"), **kwargs)

        code, output, _ = _run_with(factory)

        assert code == EXIT_CAPTURE_FAILED
        assert Colors.SHOW_CURSOR in output

    def test_error_logged_after_terminal_restored(self):
        events = []

        class RecordingSession(TerminalSession):
            def restore(self):
                events.append("restore")
                super().restore()

        def factory(buffer, **kwargs):
            return FakeCapture(buffer, error=CaptureError("device unplugged"), **kwargs)

        config = VisualizerConfig(glyph="#", fixed_size=(8, 4))
        session = RecordingSession(stream=io.StringIO())
        with patch("termviz.cli.logger") as mock_logger:
            mock_logger.error.side_effect = lambda *args, **kwargs: events.append("error")
            code = run(config, capture_factory=factory, session=session, stop_event=threading.Event())

        assert code == EXIT_CAPTURE_FAILED
        assert events == ["restore", "error"]

    def test_start_failure_exits_nonzero(self):
        captures = []

        def factory(buffer, **kwargs):
            capture = FakeCapture(buffer, start_error=CaptureError("permission denied"), **kwargs)
            captures.append(capture)
            return capture

        code, output, _ = _run_with(factory)

        assert code == EXIT_CAPTURE_FAILED
        assert captures[0].stopped
        assert output.endswith(Colors.SHOW_CURSOR + Colors.SET_DEFAULT + "\n")

    def test_colour_written_at_startup(self):
        def factory(buffer, **kwargs):
            return FakeCapture(buffer, **kwargs)

        config = VisualizerConfig(fixed_size=(4, 2), font_colour="\033[38;5;46m")
        _, output, _ = _run_with(factory, config=config, stop_after=0.05)
        assert output.startswith(Colors.CLEAR_SCREEN + Colors.HIDE_CURSOR + "\033[38;5;46m")

    def test_capture_receives_config(self):
        captures = []

        def factory(buffer, **kwargs):
            capture = FakeCapture(buffer, **kwargs)
            captures.append(capture)
            return capture

        config = VisualizerConfig(fixed_size=(4, 2), apps=("vlc",), block_size=2048)
        _run_with(factory, config=config, stop_after=0.05)
        assert captures[0].kwargs["apps"] == ("vlc",)
        assert captures[0].kwargs["block_size"] == 2048


class TestMain:
    @pytest.fixture(autouse=True)
    def _no_logging_setup(self):
        # main() reconfigures the root logger, which would leak into other tests
        with patch("termviz.cli.configure_logging"):
            yield

    def test_application_list(self, capsys, tmp_path):
        with patch("termviz.cli.list_sources", return_value=["BlackHole 2ch", "Zoom Audio"]):
            code = main(["-l", "--config", str(tmp_path / "none.json")])
        assert code == EXIT_OK
        assert capsys.readouterr().out.splitlines() == ["BlackHole 2ch", "Zoom Audio"]

    def test_application_list_failure(self, tmp_path):
        with patch("termviz.cli.list_sources", side_effect=CaptureError("no PortAudio")):
            code = main(["-l", "--config", str(tmp_path / "none.json")])
        assert code == EXIT_CAPTURE_FAILED

    def test_bad_config_file_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{broken")
        with patch("termviz.cli.run", return_value=EXIT_OK) as mock_run:
            assert main(["--config", str(path), "-t", "#"]) == EXIT_OK
        config = mock_run.call_args.args[0]
        assert config.glyph == "#"
        assert config.db_range == (0.0, 60.0)
