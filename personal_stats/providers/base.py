from dataclasses import dataclass
from typing import Any, Callable, Optional

from personal_stats.errors import MissingCredential


@dataclass
class FetchResult:
    """Outcome of one provider call: either data or an error message."""

    ok: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, data: Any) -> "FetchResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "FetchResult":
        return cls(ok=False, error=error)

    @classmethod
    def capture(cls, func: Callable, *args, **kwargs) -> "FetchResult":
        """Run a raising provider call and fold the outcome into a result.

        Missing credentials are configuration errors and still raise.
        """
        try:
            return cls.success(func(*args, **kwargs))
        except MissingCredential:
            raise
        except Exception as e:
            return cls.failure(str(e) or e.__class__.__name__)
