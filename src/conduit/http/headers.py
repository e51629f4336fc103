"""Immutable, case-insensitive request headers.

Stores the raw byte pairs handed over by the listener and decodes
on access, so building a context costs nothing per header.
"""

from collections.abc import Iterable, Iterator, Mapping


def _fold(name: str) -> bytes:
    return name.lower().encode("latin-1")


class Headers(Mapping[str, str]):
    """Read-only header mapping with case-insensitive keys.

    ``headers[name]`` returns the first value sent for *name*;
    ``get_list`` returns every value in arrival order.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: Iterable[tuple[bytes, bytes]] = ()) -> None:
        self._raw = tuple((bytes(name), bytes(value)) for name, value in raw)

    @classmethod
    def from_mapping(cls, headers: Mapping[str, str] | None = None) -> "Headers":
        """Build headers from a ``str -> str`` mapping (tests, embedding)."""
        if not headers:
            return cls()
        return cls(
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in headers.items()
        )

    def __getitem__(self, key: str) -> str:
        folded = _fold(key)
        for name, value in self._raw:
            if name.lower() == folded:
                return value.decode("latin-1")
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        folded = _fold(key)
        return any(name.lower() == folded for name, _ in self._raw)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for name, _ in self._raw:
            key = name.decode("latin-1").lower()
            if key not in seen:
                seen.add(key)
                yield key

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"Headers({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        try:
            return self[key]
        except KeyError:
            return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*, in the order they were received."""
        folded = _fold(key)
        return [value.decode("latin-1") for name, value in self._raw if name.lower() == folded]

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        """The raw byte pairs as received from the listener."""
        return self._raw
