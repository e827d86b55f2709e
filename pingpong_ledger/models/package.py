"""Decoded package structure: flat tables addressed by index."""

from typing import List, Optional

from pydantic import BaseModel


class ModuleDescriptor(BaseModel):
    """
    A module's name reference within one package.

    Newer payloads intern the name (``name_interned_dname`` indexes the
    package's dotted-name table); older ones carry the segments inline.
    """

    name_interned_dname: Optional[int] = None
    name_segments: Optional[List[str]] = None


class DecodedPackage(BaseModel):
    """The parts of a package payload needed to list its modules."""

    minor: str = ""
    interned_strings: List[str] = []
    interned_dotted_names: List[List[int]] = []
    modules: List[ModuleDescriptor] = []
