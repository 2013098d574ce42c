"""
Caller identity produced by a route's authenticate hook.
"""

from typing import Any


class Identity:
    """
    Either absent, or present and carrying a value.

    A present identity may hold any value at all, including ``None``-like
    empties such as ``0``, ``""`` or ``{}``; presence never depends on the
    truthiness of the value.
    """

    __slots__ = ('_present', '_value')

    _ABSENT = None

    def __init__(self, present: bool, value: Any = None):
        self._present = present
        self._value = value

    @classmethod
    def absent(cls) -> 'Identity':
        if cls._ABSENT is None:
            cls._ABSENT = cls(False)
        return cls._ABSENT

    @classmethod
    def of(cls, value: Any) -> 'Identity':
        return cls(True, value)

    @classmethod
    def coerce(cls, result: Any) -> 'Identity':
        """Wrap whatever an authenticate hook returned. Only ``None`` is absent."""
        if isinstance(result, Identity):
            return result
        if result is None:
            return cls.absent()
        return cls.of(result)

    @property
    def present(self) -> bool:
        return self._present

    @property
    def value(self) -> Any:
        if not self._present:
            raise LookupError("identity is absent")
        return self._value

    def get(self, default: Any = None) -> Any:
        return self._value if self._present else default

    def __bool__(self):
        return self._present

    def __eq__(self, other):
        if not isinstance(other, Identity):
            return NotImplemented
        return self._present == other._present and self._value == other._value

    def __hash__(self):
        return hash((self._present, repr(self._value)))

    def __repr__(self):
        if not self._present:
            return 'Identity.absent()'
        return f'Identity.of({self._value!r})'


ABSENT = Identity.absent()
