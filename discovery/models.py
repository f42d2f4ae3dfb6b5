# models.py
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple


@dataclass
class DiscoveryResult:
    urls: Set[str]
    interactions: List[str]
    success: bool
    duration_ms: int
    js_heavy: bool = False
    score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'urls': sorted(self.urls),
            'interactions': list(self.interactions),
            'success': self.success,
            'duration_ms': self.duration_ms,
            'js_heavy': self.js_heavy,
            'score': self.score,
        }


@dataclass(frozen=True)
class ProbeResult:
    is_heavy: bool
    score: int
    indicators: Tuple[str, ...] = ()


@dataclass
class InteractionResult:
    urls: Set[str] = field(default_factory=set)
    interactions: List[str] = field(default_factory=list)
    elements_interacted: int = 0
    success: bool = False

    def merge(self, other: 'InteractionResult'):
        self.urls.update(other.urls)
        self.interactions.extend(other.interactions)
        self.elements_interacted += other.elements_interacted


@dataclass
class ScrollResult:
    urls: Set[str] = field(default_factory=set)
    interactions: List[str] = field(default_factory=list)
    scroll_attempts: int = 0


@dataclass
class FrameResult:
    urls: Set[str] = field(default_factory=set)
    interactions: List[str] = field(default_factory=list)
    frames_scanned: int = 0
    frames_failed: int = 0


@dataclass
class AuthResult:
    success: bool
    interactions: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(frozen=True)
class LoginForm:
    form_selector: str
    username_selector: str
    password_selector: str
    submit_selector: str
    csrf_token: Optional[str] = None


@dataclass
class StaticHarvest:
    urls: Set[str] = field(default_factory=set)
    interactions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SelectorGroup:
    """Named, ordered selectors for one category of interactive control."""
    name: str
    selectors: Tuple[str, ...]

    def __iter__(self) -> Iterator[str]:
        return iter(self.selectors)

    def __len__(self) -> int:
        return len(self.selectors)
