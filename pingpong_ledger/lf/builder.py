"""
Package payload builder.

Produces ``ArchivePayload`` bytes that list a set of modules, using the
same schema the decoder reads. Used by the sandbox ledger to publish
packages.
"""

import hashlib
from typing import Dict, List, Sequence

from pingpong_ledger.lf import schema


class PackageBuilder:
    """
    Accumulates module names and encodes them as an LF 1 package.

    With ``interned=True`` (the default) names are written through the
    interned string and dotted-name tables; otherwise each module carries
    its name segments inline.
    """

    def __init__(self, minor: str = "14", interned: bool = True):
        self.minor = minor
        self.interned = interned
        self._modules: List[List[str]] = []

    def add_module(self, name: Sequence[str]) -> "PackageBuilder":
        if not name:
            raise ValueError("Module name must have at least one segment")
        self._modules.append(list(name))
        return self

    def build(self) -> bytes:
        """Encode the archive payload."""
        archive = schema.ArchivePayload(minor=self.minor)
        archive.daml_lf_1.SetInParent()
        self._fill_package(archive.daml_lf_1)
        return archive.SerializeToString(deterministic=True)

    def _fill_package(self, package) -> None:
        if not self.interned:
            for name in self._modules:
                package.modules.add().name_dname.segments.extend(name)
            return

        strings: Dict[str, int] = {}
        dotted: Dict[tuple, int] = {}
        for name in self._modules:
            segments = tuple(strings.setdefault(s, len(strings)) for s in name)
            package.modules.add(
                name_interned_dname=dotted.setdefault(segments, len(dotted))
            )
        package.interned_strings.extend(strings)
        for segments in dotted:
            package.interned_dotted_names.add(segments_interned_str=segments)


def package_id_for(payload: bytes) -> str:
    """The package id the ledger assigns: SHA-256 of the payload."""
    return hashlib.sha256(payload).hexdigest()
