"""
Model archive containers: a plain JSON configuration or a DL4J zip.
"""

from __future__ import annotations

import io
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

CONFIGURATION_ENTRY = "configuration.json"
COEFFICIENTS_ENTRY = "coefficients.bin"
NO_PARAMS_MARKER = "noParams.marker"
UPDATER_STATE_ENTRY = "updaterState.bin"

ZIP_MAGIC = b"PK\x03\x04"


class ArchiveDecodeError(Exception):
    """Raised when an archive cannot yield a configuration at all."""


@dataclass
class ArchiveContents:
    config_text: str
    config_entry: Optional[str] = None
    coefficients: Optional[bytes] = None
    has_no_params_marker: bool = False
    has_updater_state: bool = False
    entries: List[str] = field(default_factory=list)


def is_zip(data: bytes, file_name: str = "") -> bool:
    return file_name.lower().endswith(".zip") or data[:4] == ZIP_MAGIC


def _find_config_entry(zf: zipfile.ZipFile) -> Optional[zipfile.ZipInfo]:
    names = {i.filename: i for i in zf.infolist()}
    if CONFIGURATION_ENTRY in names:
        return names[CONFIGURATION_ENTRY]
    for info in zf.infolist():
        if not info.is_dir() and info.filename.lower().endswith(".json"):
            return info
    return None


def _decode_text(raw: bytes, what: str) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ArchiveDecodeError(f"{what} is not UTF-8 text: {e}") from e


def read_zip(data: bytes) -> ArchiveContents:
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise ArchiveDecodeError(f"Not a readable zip archive: {e}") from e

    with zf:
        entries = zf.namelist()
        config_info = _find_config_entry(zf)
        if config_info is None:
            raise ArchiveDecodeError(
                "No configuration.json or other JSON file found in the ZIP archive"
            )
        try:
            config_text = _decode_text(zf.read(config_info), config_info.filename)
        except (zipfile.BadZipFile, zlib.error) as e:
            raise ArchiveDecodeError(f"Cannot read {config_info.filename}: {e}") from e

        coefficients = None
        if COEFFICIENTS_ENTRY in entries:
            try:
                coefficients = zf.read(COEFFICIENTS_ENTRY)
            except (zipfile.BadZipFile, zlib.error) as e:
                logger.warning("Cannot read {entry}: {error}", entry=COEFFICIENTS_ENTRY, error=e)

        return ArchiveContents(
            config_text=config_text,
            config_entry=config_info.filename,
            coefficients=coefficients,
            has_no_params_marker=NO_PARAMS_MARKER in entries,
            has_updater_state=UPDATER_STATE_ENTRY in entries,
            entries=entries,
        )


def open_archive(data: bytes, file_name: str = "") -> ArchiveContents:
    """Split raw archive bytes into configuration text and binary entries."""
    if is_zip(data, file_name):
        return read_zip(data)
    return ArchiveContents(config_text=_decode_text(data, file_name or "configuration"))
