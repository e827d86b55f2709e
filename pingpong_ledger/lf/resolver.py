"""
Module Resolver: finds the package that contains a named module.

Package ids are opaque and change whenever the model is rebuilt, so the
agent locates its templates by module name instead of a hard-coded id.

Behavioral Contract:
- Packages are scanned in the order given; the first match wins
- A module matches only if every name segment is equal
- No match after the whole list raises ModuleNotFound
- A malformed payload anywhere aborts the resolution with DecodeError
"""

import logging
from typing import Dict, List, Optional, Sequence

from pingpong_ledger.errors import ModuleNotFound
from pingpong_ledger.ledger.client import LedgerClient
from pingpong_ledger.lf.decoder import decode_package, module_names

logger = logging.getLogger(__name__)


class ModuleResolver:
    """
    Resolves module names to package ids on one ledger.

    Decoded module names are cached per package id when ``cache`` is set;
    packages are immutable once published.
    """

    def __init__(self, client: LedgerClient, cache: bool = True):
        self.client = client
        self.cache = cache
        self._module_names: Dict[str, List[List[str]]] = {}

    def detect_package_id(self, module_name: Sequence[str]) -> str:
        """Resolve ``module_name`` against every package on the ledger."""
        return self.resolve(self.client.list_packages(), module_name)

    def resolve(self, package_ids: Sequence[str], module_name: Sequence[str]) -> str:
        """Return the id of the first package containing ``module_name``."""
        target = list(module_name)
        searched = 0
        for package_id in package_ids:
            searched += 1
            if target in self.modules_of(package_id):
                logger.info(
                    "Module %s found in package %s", ".".join(target), package_id
                )
                return package_id

        raise ModuleNotFound(target, searched)

    def modules_of(self, package_id: str) -> List[List[str]]:
        """Fetch and decode the module names of one package."""
        cached: Optional[List[List[str]]] = self._module_names.get(package_id)
        if cached is not None:
            return cached

        descriptor = self.client.get_package(package_id)
        names = module_names(decode_package(descriptor.archive_payload))
        logger.debug(
            "Package %s has modules %s",
            package_id,
            [".".join(n) for n in names],
        )
        if self.cache:
            self._module_names[package_id] = names
        return names
