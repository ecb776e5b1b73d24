"""Request layer — assembly of executable requests and content staging."""

from httptask.request.assembler import HttpRequest, MultipartPart, RequestAssembler, assemble
from httptask.request.staging import ContentStager, ScratchFile

__all__ = [
    "ContentStager",
    "HttpRequest",
    "MultipartPart",
    "RequestAssembler",
    "ScratchFile",
    "assemble",
]
