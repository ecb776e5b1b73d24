"""Protocol constants shared by the request, transport and template layers."""

from __future__ import annotations

import sys

# Template delimiters.
TEMPLATE_OPEN = "{{"
TEMPLATE_CLOSE = "}}"
TEMPLATE_PREFIX_ENV = "env"

# Internal content references look like ``storage:///path/to/object``.
DEFAULT_STORAGE_SCHEME = "storage"

# Media types.
MEDIA_TYPE_MULTIPART_FORM_DATA = "multipart/form-data"
MEDIA_TYPE_FORM_URLENCODED = "application/x-www-form-urlencoded"

# Transport defaults.
DEFAULT_READ_TIMEOUT_SECONDS = 60.0
DEFAULT_READ_IDLE_TIMEOUT_SECONDS = 300.0
DEFAULT_CONNECTION_POOL_IDLE_TIMEOUT_SECONDS = 0.0
DEFAULT_MAX_CONTENT_LENGTH = 10 * 1024 * 1024
DEFAULT_CHARSET = "utf-8"
DEFAULT_FOLLOW_REDIRECTS = True
UNBOUNDED_CONTENT_LENGTH = sys.maxsize

# Streaming.
DEFAULT_CHUNK_SIZE = 64 * 1024
COPY_BUFFER_SIZE = 1024 * 1024

# Observability tag keys.
TAG_REQUEST_METHOD = "request.method"
TAG_RESPONSE_CODE = "response.code"
