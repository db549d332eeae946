"""Built-in middleware: X-Powered-By.

Registered first in the outgoing chain unless disabled with
``app.powered_by_header(False)``.
"""

from wren.http.request import Request
from wren.http.response import ResponseDescriptor, find_header

POWERED_BY_HEADER = "X-Powered-By"


class PoweredBy:
    """Outgoing middleware stamping ``X-Powered-By``.

    A value the handler already set (in any letter case) is preserved.
    """

    __slots__ = ("value",)

    def __init__(self, value: str = "Wren") -> None:
        self.value = value

    def __call__(self, request: Request, descriptor: ResponseDescriptor) -> None:  # noqa: ARG002
        if find_header(descriptor.headers, POWERED_BY_HEADER):
            return
        descriptor.headers[POWERED_BY_HEADER] = self.value
