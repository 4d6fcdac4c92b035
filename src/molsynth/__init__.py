"""molsynth: chemical formula to 3D molecular structure."""

__version__ = "0.3.0"
