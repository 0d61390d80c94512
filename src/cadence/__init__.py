"""cadence: SM-2 spaced-repetition scheduling and review sessions."""

from cadence.consts import VERSION

__version__ = VERSION
