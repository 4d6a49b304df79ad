"""Elliott-wave impulse detection: zigzag pivots, impulse classification, setup signals."""

__version__ = "0.1.0"
