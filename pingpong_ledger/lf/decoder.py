"""
Package payload decoder.

Decodes just enough of an ``ArchivePayload`` to list the package's module
names: the interned string table, the interned dotted-name table and each
module's name reference. The decoded form is a set of flat arrays; names
are resolved by bounds-checked index lookups and never cross package
boundaries.

Behavioral Contract:
- Any out-of-range index raises IndexOutOfRange (a DecodeError)
- Structural corruption raises DecodeError; nothing is silently dropped
- Unknown fields are ignored
"""

from typing import List, Sequence

from google.protobuf.message import DecodeError as ProtoDecodeError

from pingpong_ledger.errors import DecodeError, IndexOutOfRange
from pingpong_ledger.lf import schema
from pingpong_ledger.models.package import DecodedPackage, ModuleDescriptor


class InternedStringTable:
    """Index-addressable string table owned by one decoded package."""

    def __init__(self, strings: Sequence[str]):
        self._strings = list(strings)

    def __len__(self) -> int:
        return len(self._strings)

    def lookup(self, index: int) -> str:
        if not 0 <= index < len(self._strings):
            raise IndexOutOfRange("interned string", index, len(self._strings))
        return self._strings[index]

    def resolve(self, indices: Sequence[int]) -> List[str]:
        """Map a sequence of indices to the strings they refer to, in order."""
        return [self.lookup(i) for i in indices]


def decode_package(payload: bytes) -> DecodedPackage:
    """Decode an ``ArchivePayload`` into its module-naming tables."""
    archive = schema.ArchivePayload()
    try:
        archive.ParseFromString(payload)
    except (ProtoDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Malformed archive payload: {e}") from e

    if not archive.HasField("daml_lf_1"):
        raise DecodeError("Archive payload does not contain an LF 1 package")

    lf_package = archive.daml_lf_1
    return DecodedPackage(
        minor=archive.minor,
        interned_strings=list(lf_package.interned_strings),
        interned_dotted_names=[
            list(name.segments_interned_str)
            for name in lf_package.interned_dotted_names
        ],
        modules=[_decode_module(module) for module in lf_package.modules],
    )


def _decode_module(module) -> ModuleDescriptor:
    kind = module.WhichOneof("name")
    if kind == "name_interned_dname":
        return ModuleDescriptor(name_interned_dname=module.name_interned_dname)
    if kind == "name_dname":
        return ModuleDescriptor(name_segments=list(module.name_dname.segments))
    raise DecodeError("Module without a name")


def resolve_dotted_names(package: DecodedPackage) -> List[List[str]]:
    """Resolve every interned dotted name of the package to its segments."""
    strings = InternedStringTable(package.interned_strings)
    return [strings.resolve(name) for name in package.interned_dotted_names]


def module_names(package: DecodedPackage) -> List[List[str]]:
    """
    Decode the name of every module in the package.

    Interned names are looked up in this package's own dotted-name table;
    an index outside it raises IndexOutOfRange.
    """
    dotted_names = resolve_dotted_names(package)
    names = []
    for module in package.modules:
        if module.name_interned_dname is not None:
            index = module.name_interned_dname
            if not 0 <= index < len(dotted_names):
                raise IndexOutOfRange("interned dotted name", index, len(dotted_names))
            names.append(dotted_names[index])
        else:
            names.append(list(module.name_segments))
    return names
