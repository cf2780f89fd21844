"""Unsigned request store — durable, create-once signing artifacts.

Layout under ``base_dir``::

    unsigned/<request_id>.unsignedTx.json   written here, never overwritten
    signed/<request_id>.signedTx.json       written by the custody service

Invariants:
    - At most one unsigned record per request id; a second ``create`` fails.
    - A record is either fully written or absent (temp file + hard link).
    - Signed records are read-only from this side.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from airgap_tx.errors.definitions import (
    AlreadyExistsError,
    InvalidRequestIdError,
    MissingSignatureError,
    NotFoundError,
)
from airgap_tx.tx.models import SignedResponse, UnsignedRequest

if TYPE_CHECKING:
    from airgap_tx.config.settings import StorageConfig

logger = logging.getLogger(__name__)

_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]+$")
_UNSIGNED_SUFFIX = ".unsignedTx.json"
_SIGNED_SUFFIX = ".signedTx.json"


class UnsignedRequestStore:
    """Filesystem store for pending-signature artifacts.

    Example:
        store = UnsignedRequestStore("proposals")
        store.create(request)
        ...
        unsigned = store.get_unsigned(request.request_id)
        signed = store.get_signed(request.request_id)
    """

    def __init__(
        self,
        base_dir: str | Path,
        *,
        unsigned_dir: str = "unsigned",
        signed_dir: str = "signed",
    ) -> None:
        self._base = Path(base_dir)
        self._unsigned = self._base / unsigned_dir
        self._signed = self._base / signed_dir

    @classmethod
    def from_config(cls, config: StorageConfig) -> UnsignedRequestStore:
        return cls(
            config.base_dir,
            unsigned_dir=config.unsigned_dir,
            signed_dir=config.signed_dir,
        )

    # -----------------------------------------------------------------
    # Paths
    # -----------------------------------------------------------------

    def unsigned_path(self, request_id: str) -> Path:
        return self._unsigned / f"{_check_id(request_id)}{_UNSIGNED_SUFFIX}"

    def signed_path(self, request_id: str) -> Path:
        return self._signed / f"{_check_id(request_id)}{_SIGNED_SUFFIX}"

    # -----------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------

    def exists(self, request_id: str) -> bool:
        return self.unsigned_path(request_id).exists()

    def create(self, request: UnsignedRequest) -> Path:
        """Persist *request*; fails if a record for its id already exists.

        Raises:
            AlreadyExistsError: If the request id is already taken. The
                existing record is left untouched.
        """
        path = self.unsigned_path(request.request_id)
        self._unsigned.mkdir(parents=True, exist_ok=True)
        body = json.dumps(request.to_dict(), indent=2).encode("utf-8")

        fd, tmp_name = tempfile.mkstemp(dir=self._unsigned, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(body)
                fh.flush()
                os.fsync(fh.fileno())
            try:
                os.link(tmp_name, path)
            except FileExistsError as exc:
                raise AlreadyExistsError(f"unsigned request {path} already exists") from exc
        finally:
            os.unlink(tmp_name)

        logger.info("Stored unsigned %s request %s", request.kind, request.request_id)
        return path

    def get_unsigned(self, request_id: str) -> UnsignedRequest:
        """Load an unsigned request.

        Raises:
            NotFoundError: If no record exists for *request_id*.
        """
        data = _read_json(self.unsigned_path(request_id), "unsigned request")
        return UnsignedRequest.from_dict(data)

    def get_signed(self, request_id: str) -> SignedResponse:
        """Load the custody service's response for *request_id*.

        Raises:
            NotFoundError: If no signed record exists yet.
            MissingSignatureError: If the record carries no signature.
        """
        path = self.signed_path(request_id)
        response = SignedResponse.from_dict(request_id, _read_json(path, "signed response"))
        if not response.signature:
            raise MissingSignatureError(f"signed response {path} does not contain a signature")
        return response


def _check_id(request_id: str) -> str:
    if not _REQUEST_ID.match(request_id) or request_id in (".", ".."):
        raise InvalidRequestIdError(f"invalid request id: {request_id!r}")
    return request_id


def _read_json(path: Path, what: str) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise NotFoundError(f"{what} {path} does not exist") from exc
    data = json.loads(text)
    if not isinstance(data, dict):
        msg = f"{what} {path} is not a JSON object"
        raise ValueError(msg)
    return data
