"""
Data models for the ROM launcher event log
"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar('T')

# Security event tags that are not validation reasons
HTTP_ERROR = 'http_error'
RATE_LIMITED = 'rate_limited'
INVALID_BODY = 'invalid_body'
ROM_PLAY_LOG_ERROR = 'rom_play_log_error'
REJECTED_PLAY_EVENT = 'rejected_play_event'


@dataclass(frozen=True)
class PlayEvent:
    """One accepted play of a ROM"""
    id: int
    rom_name: str
    played_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'rom_name': self.rom_name, 'played_at': self.played_at}


@dataclass(frozen=True)
class SecurityEvent:
    """A rejected or flagged request"""
    id: int
    event_type: str
    details: Optional[str]
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'event_type': self.event_type,
            'details': self.details,
            'created_at': self.created_at,
        }


@dataclass(frozen=True)
class PlayStat:
    """Aggregated plays for one ROM name"""
    rom_name: str
    play_count: int
    last_played: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rom_name': self.rom_name,
            'play_count': self.play_count,
            'last_played': self.last_played,
        }


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Success/failure outcome of a datastore operation."""
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> 'StoreResult[T]':
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> 'StoreResult[T]':
        return cls(ok=False, error=error)
