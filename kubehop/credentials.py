"""Opaque credential handles for hop passwords and registry tokens."""
import hmac
from typing import Any, Optional, Union

MASK = "**********"


class Secret:
    """A credential that is masked everywhere except ``reveal()``.

    The value lives in a mutable buffer so ``wipe()`` can zero it once the
    caller is done. Used as a context manager, the secret is wiped on exit.
    """

    __slots__ = ("_buf",)

    def __init__(self, value: Union[str, bytes, "Secret", None] = None):
        if isinstance(value, Secret):
            value = value.reveal()
        if value is None:
            value = b""
        elif isinstance(value, str):
            value = value.encode("utf-8")
        self._buf = bytearray(value)

    def reveal(self) -> str:
        """Return the plain text. Only call this while building a wire payload."""
        return self._buf.decode("utf-8")

    def wipe(self) -> None:
        """Zero the buffer and leave the secret empty."""
        for i in range(len(self._buf)):
            self._buf[i] = 0
        del self._buf[:]

    def __bool__(self) -> bool:
        return len(self._buf) > 0

    def __len__(self) -> int:
        return len(self._buf)

    def __repr__(self) -> str:
        return f"Secret('{MASK}')" if self else "Secret('')"

    def __str__(self) -> str:
        return MASK if self else ""

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Secret):
            return hmac.compare_digest(bytes(self._buf), bytes(other._buf))
        return NotImplemented

    __hash__ = None  # mutable

    def __enter__(self) -> "Secret":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.wipe()

    # pydantic integration: accept plain strings, serialize masked
    @classmethod
    def __get_pydantic_core_schema__(cls, source_type, handler):
        from pydantic_core import core_schema

        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )

    @classmethod
    def __get_pydantic_json_schema__(cls, schema, handler):
        return {"type": "string", "format": "password", "writeOnly": True}

    @classmethod
    def _validate(cls, value: Any) -> "Secret":
        if isinstance(value, Secret):
            return value
        if isinstance(value, (str, bytes)):
            return cls(value)
        raise ValueError("credential must be a string")


def as_secret(value: Union[str, bytes, Secret, None]) -> Optional[Secret]:
    """Wrap ``value`` in a Secret, keeping None as None."""
    if value is None:
        return None
    return value if isinstance(value, Secret) else Secret(value)


def reveal(value: Optional[Secret]) -> Optional[str]:
    return value.reveal() if value is not None else None
