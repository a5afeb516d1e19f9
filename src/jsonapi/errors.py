from __future__ import annotations

from dataclasses import dataclass, replace
from typing import ClassVar, Union


@dataclass(frozen=True, slots=True)
class APIError(Exception):
    """An HTTP status raised by a business handler.

    The catalog below holds prototypes; derive a concrete error with `set_data`:

        raise E404.set_data("User not found")

    For 3xx codes `url` is the redirect target. There is no 500 prototype,
    raise an ordinary exception instead.
    """

    code: int
    message: str = ""
    url: str = ""

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.code < 400

    def set_data(self, data: str) -> APIError:
        """Return a copy carrying *data* as redirect target (3xx) or message."""
        if self.is_redirect:
            return replace(self, url=data)
        return replace(self, message=data)

    def __str__(self) -> str:
        if not self.message:
            return str(self.code)
        return f"{self.code}: {self.message}"


def clean_text(text: str) -> str:
    """Replace lone surrogates with U+FFFD so *text* always encodes as UTF-8."""
    return text.encode("utf-8", "surrogatepass").decode("utf-8", "replace")


class DecodeError(ValueError):
    """The request body is absent, exhausted or not valid JSON."""


class EncodeError(ValueError):
    """A value could not be serialised to JSON."""


@dataclass(frozen=True, slots=True)
class Structured:
    error: APIError

    @property
    def status_code(self) -> int:
        return self.error.code

    @property
    def redirect_url(self) -> str | None:
        if self.error.is_redirect and self.error.url:
            return self.error.url
        return None

    def __str__(self) -> str:
        return str(self.error)


@dataclass(frozen=True, slots=True)
class Unstructured:
    message: str

    status_code: ClassVar[int] = 500
    redirect_url: ClassVar[None] = None

    def __str__(self) -> str:
        return self.message


Failure = Union[Structured, Unstructured]


E301 = APIError(301, "Resource has been moved permanently")
E302 = APIError(302, "Resource has bee found at another location")
E307 = APIError(307, "Resource has been moved to another location temporarily")
E400 = APIError(400, "Error parsing request")
E401 = APIError(401, "You have to be authorized before accessing this resource")
E403 = APIError(403, "You have no right to access this resource")
E404 = APIError(404, "Resource not found")
E418 = APIError(418, "I'm a teapot")
E504 = APIError(504, "Service unavailable")
