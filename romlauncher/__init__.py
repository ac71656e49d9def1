"""
GBA Playground - a small web launcher for locally stored GBA ROMs

Lists ROM files, serves them to a browser-hosted emulator and keeps an
append-only log of play and security events.
"""

__version__ = '1.0.0'
__author__ = 'GBA Playground'

from .config import AppConfig, load_config
from .errors import AppError, RomListingError
from .library import RomLibrary
from .models import PlayEvent, PlayStat, SecurityEvent, StoreResult
from .ratelimit import SlidingWindowLimiter
from .store import EventStore
from .validation import ValidationResult, validate_rom_name


__all__ = [
    'AppConfig',
    'load_config',
    'AppError',
    'RomListingError',
    'RomLibrary',
    'PlayEvent',
    'PlayStat',
    'SecurityEvent',
    'StoreResult',
    'SlidingWindowLimiter',
    'EventStore',
    'ValidationResult',
    'validate_rom_name',
]
