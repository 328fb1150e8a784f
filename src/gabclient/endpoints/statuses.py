from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Optional, Union

from gabclient.core.errors import GabClientError
from gabclient.core.session import Session
from gabclient.core.transport import BodyKind, ResponseEnvelope, Transport


async def get_status(
    transport: Transport, session: Session, status_id: Union[int, str]
) -> ResponseEnvelope:
    return await transport.send(session, session.url(f"/api/v1/statuses/{status_id}"))


async def delete_status(
    transport: Transport, session: Session, status_id: Union[int, str]
) -> ResponseEnvelope:
    return await transport.send(
        session,
        session.url(f"/api/v1/statuses/{status_id}"),
        "DELETE",
        expected_statuses=(200, 204),
    )


async def upload_media(
    transport: Transport,
    session: Session,
    file: Union[str, Path, bytes],
    *,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
) -> ResponseEnvelope:
    """
    Upload an attachment for a later status.
    - `file` is a path or the raw bytes (then `filename` names the part)
    - Sent as multipart/form-data, part name "file"
    - The API answers 200, or 202 while it still processes video
    The returned content holds the media id to pass when posting.
    """
    if isinstance(file, (bytes, bytearray)):
        data = bytes(file)
        name = filename or "file"
    else:
        path = Path(file)
        if not path.is_file():
            raise GabClientError(f"File not found: {file}")
        data = path.read_bytes()
        name = filename or path.name

    ctype = content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
    return await transport.send(
        session,
        session.url("/api/v1/media"),
        "POST",
        BodyKind.BINARY,
        {"file": (name, data, ctype)},
        expected_statuses=(200, 202),
    )


__all__ = ["get_status", "delete_status", "upload_media"]
