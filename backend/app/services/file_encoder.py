"""Turn uploaded documents into base64 parts the provider can consume."""
import asyncio
import base64
import binascii
import logging

from app.core.errors import EncodingError, ValidationError
from app.models.study_plan import EncodedPart, UploadedDocument

logger = logging.getLogger("examprep.file_encoder")

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/jpg",
}

_EXTENSION_MIME_TYPES = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}


def mime_type_for(filename: str, declared: str | None = None) -> str:
    """Return the declared MIME type, falling back to the file extension."""
    if declared and declared != "application/octet-stream":
        return declared.lower()
    ext = filename.lower().rsplit(".", 1)[-1] if "." in filename else ""
    return _EXTENSION_MIME_TYPES.get(ext, declared or "application/octet-stream")


_TYPE_LABELS = {
    "application/pdf": "PDF",
    "image/png": "PNG",
    "image/jpeg": "JPG",
    "image/jpg": "JPG",
}


def _describe_types(accepted) -> str:
    labels = list(dict.fromkeys(label for mime, label in _TYPE_LABELS.items() if mime in accepted))
    if len(labels) == 1:
        return labels[0]
    return ", ".join(labels[:-1]) + " or " + labels[-1]


def validate_documents(
    documents: list[UploadedDocument],
    max_bytes: int,
    accepted=ALLOWED_MIME_TYPES,
) -> None:
    """Reject unsupported or oversized files before anything is read.

    ``accepted`` narrows the MIME types for providers that take fewer kinds.
    """
    limit_mb = max_bytes // (1024 * 1024)
    for doc in documents:
        if doc.mime_type not in accepted:
            raise ValidationError(
                f"File \"{doc.filename}\" is not a supported type. "
                f"Upload {_describe_types(accepted)} files."
            )
        if doc.size_bytes > max_bytes:
            raise ValidationError(f"File \"{doc.filename}\" exceeds the {limit_mb}MB limit.")


async def encode_document(document: UploadedDocument) -> EncodedPart:
    try:
        content = await document.read()
    except Exception as e:
        logger.warning("Failed to read %s: %s", document.filename, e)
        raise EncodingError(document.filename, str(e)) from e

    return EncodedPart(
        data=base64.b64encode(content).decode("ascii"),
        mime_type=document.mime_type,
        filename=document.filename,
    )


async def encode_documents(documents: list[UploadedDocument]) -> list[EncodedPart]:
    """Encode every document concurrently, preserving input order."""
    return list(await asyncio.gather(*(encode_document(d) for d in documents)))


def decode_part(part: EncodedPart) -> bytes:
    return base64.b64decode(part.data)


def split_data_url(data: str) -> tuple[str | None, str]:
    """Split ``data:<mime>;base64,<payload>`` into (mime, payload).

    Bare base64 is returned unchanged with a ``None`` MIME type.
    """
    if data.startswith("data:") and "," in data:
        header, payload = data.split(",", 1)
        mime = header[len("data:"):].split(";", 1)[0] or None
        return mime, payload
    return None, data


def document_from_relay_file(name: str, declared_type: str, data: str) -> UploadedDocument:
    """Rebuild an UploadedDocument from the relay wire format."""
    url_mime, payload = split_data_url(data)
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncodingError(name, "payload is not valid base64") from e
    return UploadedDocument.from_bytes(
        content, name, mime_type_for(name, declared_type or url_mime)
    )
