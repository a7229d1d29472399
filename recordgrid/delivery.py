"""File delivery collaborators.

Exports end by handing ``(payload, mime_type, filename)`` to a delivery
callable. A browser front end would trigger a download; these
implementations write to disk or keep the payload in memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .log import info


class FileDelivery(Protocol):
    """Anything that can receive an exported file."""

    def __call__(self, payload: bytes, mime_type: str, filename: str) -> None:
        """Deliver ``payload`` as ``filename``."""
        ...


@dataclass
class DeliveredFile:
    """One file handed to a MemoryDelivery."""

    payload: bytes
    mime_type: str
    filename: str


@dataclass
class MemoryDelivery:
    """Keep delivered files in a list (embedding, tests)."""

    files: list[DeliveredFile] = field(default_factory=list)

    def __call__(self, payload: bytes, mime_type: str, filename: str) -> None:
        self.files.append(DeliveredFile(payload=payload, mime_type=mime_type, filename=filename))

    @property
    def last(self) -> DeliveredFile | None:
        """Most recently delivered file."""
        return self.files[-1] if self.files else None


class DirectoryDelivery:
    """Write delivered files into a directory.

    Only the final path component of ``filename`` is used.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def __call__(self, payload: bytes, mime_type: str, filename: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / Path(filename).name
        target.write_bytes(payload)
        info(f"Wrote {len(payload)} bytes ({mime_type}) to {target}")
