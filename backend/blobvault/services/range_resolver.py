"""Single byte-range resolution for the Range request header."""
import enum
import re
from dataclasses import dataclass

_RANGE_SPEC = re.compile(r"^(\d*)-(\d*)$")


class RangeVerdict(enum.Enum):
    # No usable Range: serve the full resource
    NONE = "none"
    UNSATISFIABLE = "unsatisfiable"


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total: int) -> str:
        return f"bytes {self.start}-{self.end}/{total}"


def resolve_range(header: str | None, length: int) -> ByteRange | RangeVerdict:
    """Resolve a Range header against a resource of ``length`` bytes.

    Only one ``bytes`` range is honoured. Other units, multiple ranges and
    anything unparseable resolve to ``RangeVerdict.NONE``.
    """
    if not header:
        return RangeVerdict.NONE

    unit, sep, spec = header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        return RangeVerdict.NONE
    if "," in spec:
        return RangeVerdict.NONE

    match = _RANGE_SPEC.match(spec.strip())
    if not match:
        return RangeVerdict.NONE
    first, last = match.groups()

    if not first:
        if not last:
            return RangeVerdict.NONE
        suffix = int(last)
        if suffix <= 0:
            return RangeVerdict.UNSATISFIABLE
        start = max(0, length - suffix)
        end = length - 1
    else:
        start = int(first)
        end = int(last) if last else length - 1

    if start < 0 or end < start or end >= length:
        return RangeVerdict.UNSATISFIABLE
    return ByteRange(start, end)
