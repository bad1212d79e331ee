"""
termviz
Live bar-chart spectrogram of captured audio, drawn in the terminal.
"""

from .config import VisualizerConfig
from .pipeline import VisualizerPipeline
from .spectrograph import BarSpectrograph

__all__ = [
    'VisualizerConfig',
    'VisualizerPipeline',
    'BarSpectrograph',
]
