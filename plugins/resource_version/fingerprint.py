"""
Content fingerprints and the two path strategies built on them:

- ``query``:  ``/img/a.png`` -> ``/img/a.png?v=1a2b3``
- ``rename``: ``/img/a.png`` -> ``/img/a_1a2b3.png`` plus a new artifact
  holding the content under the renamed path.
"""

import hashlib
import re
from dataclasses import dataclass
from typing import Optional, Union

from .options import Options

EXT_RE = re.compile(r"(\.\w+)$")


@dataclass(frozen=True)
class Artifact:
    path: str
    content: bytes


@dataclass(frozen=True)
class Fingerprint:
    final_path: str
    artifact: Optional[Artifact] = None


def _as_bytes(content: Union[str, bytes]) -> bytes:
    if isinstance(content, str):
        return content.encode("utf8")
    return bytes(content)


def content_hash(content: Union[str, bytes], length: int) -> str:
    """md5 hex digest of ``content`` truncated to ``length`` characters."""
    return hashlib.md5(_as_bytes(content)).hexdigest()[:length]


def insert_hash(path: str, file_hash: str) -> str:
    """``a/b.css`` -> ``a/b_<hash>.css``; paths without an extension are kept."""
    return EXT_RE.sub(lambda m: f"_{file_hash}{m.group(1)}", path)


def compute_path(
    content: Union[str, bytes],
    logical_path: str,
    options: Options,
    origin_path: Optional[str] = None,
) -> Fingerprint:
    """Compute the path a reference to ``logical_path`` should be rewritten to.

    ``origin_path`` is the reference as written by the referring file; when
    given it is what gets rewritten, so relative references stay relative.
    """
    data = _as_bytes(content)
    file_hash = content_hash(data, options.length)
    origin = origin_path or logical_path

    if options.type == "query":
        return Fingerprint(final_path=f"{origin}?v={file_hash}")

    return Fingerprint(
        final_path=insert_hash(origin, file_hash),
        artifact=Artifact(path=insert_hash(logical_path, file_hash), content=data),
    )
