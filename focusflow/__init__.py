# Core package for FocusFlow: focus sessions, prayer-aware scheduling,
# task board and achievements
__version__ = "1.0.0"
