"""Download transport adapters."""

from packstash.adapters.transport.filesystem import FilesystemTransport
from packstash.adapters.transport.http import HttpTransport, TransientHttpError
from packstash.adapters.transport.router import TransportRouter, create_router
from packstash.adapters.transport.s3 import S3Transport


__all__ = [
    "FilesystemTransport",
    "HttpTransport",
    "S3Transport",
    "TransientHttpError",
    "TransportRouter",
    "create_router",
]
