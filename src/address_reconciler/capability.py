from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from .models import Address


@runtime_checkable
class AddressCapable(Protocol):
    """Read interface a record must expose to take part in matching.

    ``identity`` is stable across runs, ``components`` supplies the structural parts used
    for key derivation, and ``comparable_fields`` names the attributes that can make two
    same-key records diverge.  Records compare only the fields both sides enumerate, so
    heterogeneous schemas (address points, business licenses) reconcile without engine
    changes.
    """

    @property
    def identity(self) -> str:
        ...

    @property
    def components(self) -> Address:
        ...

    @property
    def coordinates(self) -> Optional[tuple[float, float]]:
        ...

    def comparable_fields(self) -> Mapping[str, Any]:
        ...
