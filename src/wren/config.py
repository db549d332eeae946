"""Application configuration.

Settings live on a frozen dataclass. The chainable setters on ``App``
(``views()``, ``compression()``, ``clean_urls()`` and friends) never mutate
it; each swaps in a new config built with ``dataclasses.replace``.
"""

from dataclasses import dataclass, field
from pathlib import Path

from wren.server.compression import CompressionLevels, CompressionPolicy


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(views_directory="views", powered_by=False)
    """

    # Filesystem: views and binary file paths resolve against these
    base_directory: str | Path = "."
    views_directory: str = ""

    # X-Powered-By header (preserved if a handler sets its own)
    powered_by: bool = True
    powered_by_value: str = "Wren"

    # Compression: True (br/gzip/deflate), False, or a CompressionHandler
    compression: CompressionPolicy = True
    compression_levels: CompressionLevels = field(default_factory=CompressionLevels)

    # Static files
    clean_url_extensions: tuple[str, ...] = ()  # e.g. ("html",): /about -> /about.html
    index_as_default: bool = False  # /docs -> /docs/index.html

    # Forward log records to the host's log/error channels during an invocation
    forward_logs: bool = True
