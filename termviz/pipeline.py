"""
Per-frame visualizer pipeline.

samples -> spectrum -> column magnitudes -> levels -> smoothed heights -> frame
"""

import logging
import threading
from typing import Optional

import numpy as np

from termviz.config import VisualizerConfig
from termviz.ringbuffer import BufferClosed, LatestFrameBuffer
from termviz.spectrograph import BarSpectrograph, FallSmoother, VisualizerState, target_heights
from termviz.spectrum import bucket_magnitudes, compute_spectrum, magnitudes_to_levels
from termviz.terminal import DimensionProvider

logger = logging.getLogger(__name__)


class VisualizerPipeline:
    """
    Owns the render state and turns audio blocks into terminal frames.

    Only one frame is processed at a time; process_frame is guarded by a
    lock so the smoother state and the terminal writes are never shared.
    """

    def __init__(
        self,
        config: VisualizerConfig,
        dimensions: Optional[DimensionProvider] = None,
        spectrograph: Optional[BarSpectrograph] = None,
    ):
        self.config = config
        self.dimensions = dimensions or DimensionProvider(config.fixed_size)
        self.spectrograph = spectrograph or BarSpectrograph(glyph=config.glyph)
        self.state = VisualizerState()
        self.smoother = FallSmoother(self.state)

        self._lock = threading.Lock()
        self._frames_processed = 0
        self._frames_skipped = 0

    def select_channel(self, audio: np.ndarray) -> np.ndarray:
        """Pick the configured channel out of a (frames, channels) block."""
        audio = np.asarray(audio, dtype=np.float32)
        if audio.ndim == 1:
            return audio
        if audio.shape[1] == 0:
            return np.zeros(0, dtype=np.float32)
        channel = min(self.config.channel, audio.shape[1] - 1)
        return audio[:, channel]

    def compute_heights(self, samples: np.ndarray, width: int, height: int) -> list:
        """Run transform, bucketing, level mapping and smoothing for one block."""
        spectrum = compute_spectrum(samples, half_window=self.config.half_window)
        magnitudes = bucket_magnitudes(spectrum, width)
        levels = magnitudes_to_levels(magnitudes, self.config.min_db, self.config.max_db)
        return self.smoother.apply(target_heights(levels, height))

    def process_frame(self, audio: np.ndarray) -> Optional[str]:
        """
        Render one audio block.

        Returns:
            The frame text written, or None if the frame was skipped because
            the terminal size was unavailable (state is left untouched)
        """
        with self._lock:
            size = self.dimensions.get_size()
            if size is None:
                self._frames_skipped += 1
                return None

            width, height = size
            self.state.width = width
            self.state.height = height

            heights = self.compute_heights(self.select_channel(audio), width, height)
            frame = self.spectrograph.display(heights, height)
            self._frames_processed += 1
            return frame

    def run(
        self,
        buffer: LatestFrameBuffer,
        stop_event: threading.Event,
        poll_interval: float = 0.1,
    ):
        """
        Consume frames until stop_event is set or the buffer is closed.

        Raises:
            Whatever the capture side reported through buffer.fail()
        """
        logger.info("Render loop started")
        while not stop_event.is_set():
            try:
                result = buffer.get(timeout=poll_interval)
            except BufferClosed:
                break
            if result is None:
                continue
            _, audio = result
            self.process_frame(audio)

        logger.info(
            f"Render loop stopped: {self._frames_processed} frames, "
            f"{self._frames_skipped} skipped, {buffer.stats.overruns} dropped"
        )

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    @property
    def frames_skipped(self) -> int:
        return self._frames_skipped
