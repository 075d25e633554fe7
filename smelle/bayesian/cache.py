"""
Content-addressed cache for fitted models.

Layout::

    <root>/<variant>/<name>-<hash12>.nc    arviz InferenceData (netCDF)
    <root>/<variant>/<name>.json           sidecar: latest hash and spec

A lookup only hits when the file for the exact hash exists, so an edited
specification never reuses a stale fit. With ``refit_on_change`` a sidecar
for the same name but another hash raises ``CacheMismatchError`` instead of
silently fitting next to the old entry. There is no locking; the cache is
meant for one sequential user.
"""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import arviz as az

from ..errors import CacheMismatchError
from .specification import AnySpec

HASH_PREFIX_LEN = 12


class ModelCache:
    """On-disk store of ``InferenceData`` keyed by (variant, name, spec hash)."""

    def __init__(self, root: Union[str, Path], refit_on_change: bool = False, verbose: bool = True):
        self.root = Path(root)
        self.refit_on_change = refit_on_change
        self.verbose = verbose

    def path_for(self, name: str, variant: str, key: str) -> Path:
        return self.root / variant / f"{name}-{key[:HASH_PREFIX_LEN]}.nc"

    def sidecar_for(self, name: str, variant: str) -> Path:
        return self.root / variant / f"{name}.json"

    def read_sidecar(self, name: str, variant: str) -> Optional[dict]:
        path = self.sidecar_for(name, variant)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def lookup(self, spec: AnySpec, variant: str, key: str) -> Optional[az.InferenceData]:
        """
        Return the cached fit for ``key`` or None.

        Raises
        ------
        CacheMismatchError
            In refit-on-change mode, when the latest fit stored under this
            name was produced by a different specification.
        """
        meta = self.read_sidecar(spec.name, variant)
        if self.refit_on_change and meta is not None and meta.get("hash") != key:
            raise CacheMismatchError(spec.name, meta.get("hash", ""), key)

        path = self.path_for(spec.name, variant, key)
        if not path.exists():
            return None

        if self.verbose:
            print(f"  [CACHE] Loading {spec.name} from {path}")
        # Eager load releases the file handle so the entry can be replaced later
        with az.rc_context(rc={"data.load": "eager"}):
            idata = az.from_netcdf(path)
        return idata

    def store(self, spec: AnySpec, variant: str, key: str, idata: az.InferenceData) -> Path:
        path = self.path_for(spec.name, variant, key)
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = path.parent / (path.name + ".part")
        idata.to_netcdf(str(tmp_path))
        os.replace(tmp_path, path)

        meta = {
            "name": spec.name,
            "hash": key,
            "file": path.name,
            "spec": spec.to_dict(),
            "created": datetime.now().isoformat(timespec="seconds"),
        }
        with open(self.sidecar_for(spec.name, variant), "w", encoding="utf-8") as f:
            json.dump(meta, f, indent=2)

        if self.verbose:
            print(f"  [CACHE] Stored {spec.name} -> {path}")
        return path

    def clear(self, variant: Optional[str] = None) -> int:
        """Delete cached fits (one variant or all); returns the number of files removed."""
        base = self.root / variant if variant else self.root
        if not base.exists():
            return 0
        removed = 0
        for path in list(base.rglob("*.nc")) + list(base.rglob("*.json")):
            path.unlink()
            removed += 1
        return removed
