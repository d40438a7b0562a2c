# launchpad/update/version.py
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

__all__ = ["LoaderVersion"]



VERSION_RE = re.compile(r"^[vV]?(?P<parts>\d+(?:\.\d+){0,3})$")



@total_ordering
@dataclass(frozen=True)
class LoaderVersion:
    """Dotted numeric version (1 to 4 parts) as used by release tags, e.g. `v0.4.2`."""
    parts: tuple[int, ...]
    
    @classmethod
    def parse(cls, text: str) -> LoaderVersion:
        match = VERSION_RE.match(str(text).strip())
        if match is None:
            raise ValueError(f"Invalid version '{text}'")
        return cls(tuple(int(part) for part in match.group("parts").split(".")))
    
    def _cmpKey(self) -> tuple[int, ...]:
        # Missing trailing parts count as zero, so 1.2 == 1.2.0
        return self.parts + (0,) * (4 - len(self.parts))
    
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LoaderVersion):
            return NotImplemented
        return self._cmpKey() == other._cmpKey()
    
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, LoaderVersion):
            return NotImplemented
        return self._cmpKey() < other._cmpKey()
    
    def __hash__(self) -> int:
        return hash(self._cmpKey())
    
    def __str__(self) -> str:
        return ".".join(str(part) for part in self.parts)
