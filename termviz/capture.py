"""
Audio capture for the terminal visualizer using sounddevice.

Opens an input stream on the selected device and hands every block to a
LatestFrameBuffer. Loopback sources (e.g. "BlackHole", "Stereo Mix",
"Monitor of ...") capture what the system is playing.

sounddevice is imported on first use: it loads the PortAudio shared library
at import time, and --help should work without it.
"""

import logging
import time
from typing import List, Optional, Sequence, Union

import numpy as np

from termviz.ringbuffer import LatestFrameBuffer

logger = logging.getLogger(__name__)

# Substrings that usually mark a loopback / monitor input
LOOPBACK_HINTS = (
    "loopback",
    "monitor of",
    "stereo mix",
    "what u hear",
    "blackhole",
    "soundflower",
    "cable output",
)


class CaptureError(Exception):
    """Audio capture could not start or stopped unexpectedly."""


def _sounddevice():
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        raise CaptureError(f"sounddevice/PortAudio not available: {e}") from e
    return sd


def _query_devices():
    sd = _sounddevice()
    try:
        return sd.query_devices()
    except sd.PortAudioError as e:
        raise CaptureError(f"Could not query audio devices: {e}") from e


def list_sources() -> List[str]:
    """Sorted names of all devices that can be recorded from."""
    devices = _query_devices()
    names = {dev["name"] for dev in devices if dev["max_input_channels"] > 0 and dev["name"]}
    return sorted(names)


def find_input_device(
    apps: Sequence[str] = (), device: Optional[str] = None
) -> Optional[Union[int, str]]:
    """
    Choose the input device to record from.

    Args:
        apps: Lower-cased name filters; the first input whose name contains
            any of them is used
        device: Explicit device index or name, takes precedence

    Returns:
        A device index, a device name, or None for the system default

    Raises:
        CaptureError: if filters were given and nothing matches
    """
    if device is not None:
        return int(device) if device.isdigit() else device

    inputs = [(i, dev) for i, dev in enumerate(_query_devices()) if dev["max_input_channels"] > 0]

    if apps:
        for i, dev in inputs:
            name = dev["name"].lower()
            if any(app in name for app in apps):
                logger.info(f"Capturing from '{dev['name']}'")
                return i
        raise CaptureError(f"No audio source matches: {', '.join(apps)}")

    for i, dev in inputs:
        name = dev["name"].lower()
        if any(hint in name for hint in LOOPBACK_HINTS):
            logger.info(f"Found loopback device: {dev['name']}")
            return i

    logger.info("No loopback device found, using default input")
    return None


class AudioCapture:
    """
    Feeds captured audio blocks into a LatestFrameBuffer.

    The sounddevice callback runs on PortAudio's thread; it only copies the
    block and returns. A stream that ends while still wanted is reported to
    the buffer as a fatal CaptureError.
    """

    def __init__(
        self,
        buffer: LatestFrameBuffer,
        apps: Sequence[str] = (),
        device: Optional[str] = None,
        sample_rate: Optional[int] = None,
        block_size: int = 1024,
    ):
        self.buffer = buffer
        self.apps = tuple(apps)
        self.device = device
        self.sample_rate = sample_rate
        self.block_size = block_size

        self._stream = None
        self._running = False

    def _audio_callback(self, indata, frames, time_info, status):
        if status:
            logger.debug(f"Audio status: {status}")
        # indata is reused by PortAudio once the callback returns
        self.buffer.put(time.time(), indata.copy())

    def _finished_callback(self):
        if self._running:
            self._running = False
            logger.debug("Audio stream stopped unexpectedly")
            self.buffer.fail(CaptureError("Stream stopped with error"))

    def start(self):
        """
        Open and start the input stream.

        Raises:
            CaptureError: no matching device, permission denied, or the
                backend refused the stream
        """
        sd = _sounddevice()
        device_id = find_input_device(self.apps, self.device)

        try:
            info = sd.query_devices(device_id, "input")
            channels = max(1, min(2, int(info["max_input_channels"])))
            sample_rate = self.sample_rate or int(info["default_samplerate"])

            self._stream = sd.InputStream(
                device=device_id,
                channels=channels,
                samplerate=sample_rate,
                blocksize=self.block_size,
                dtype=np.float32,
                callback=self._audio_callback,
                finished_callback=self._finished_callback,
            )
            self._running = True
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._running = False
            self._stream = None
            raise CaptureError(f"Failed to start audio capture: {e}") from e

        logger.info(
            f"Capture started: device={info['name']} rate={sample_rate}Hz "
            f"channels={channels} block={self.block_size}"
        )

    def stop(self):
        """Stop audio capture."""
        self._running = False

        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.debug(f"Error stopping stream: {e}")
            self._stream = None

    @property
    def is_running(self) -> bool:
        return self._running
