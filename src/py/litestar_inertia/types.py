"""Inertia protocol request types.

A request is either a :class:`StandardVisit` (first load or full navigation) or a
:class:`PartialReload` carrying a :class:`PartialReloadSpec` built from the partial-reload
headers. The kind is computed once per request and drives which props are resolved.
"""

from dataclasses import dataclass, field
from typing import Any, Final, Union

__all__ = (
    "STANDARD_VISIT",
    "PartialReload",
    "PartialReloadSpec",
    "RequestKind",
    "StandardVisit",
    "TemporarySession",
)


@dataclass(frozen=True)
class PartialReloadSpec:
    """Filter sent by the client on a partial reload.

    A non-empty ``only`` set takes absolute precedence over ``except_``.
    """

    component: str
    only: "frozenset[str]" = field(default_factory=frozenset)
    except_: "frozenset[str]" = field(default_factory=frozenset)

    def includes(self, key: str) -> bool:
        """Return True when a filterable prop named ``key`` is selected.

        Args:
            key: The prop name.

        Returns:
            True if the prop must be included in the partial response.
        """
        if self.only:
            return key in self.only
        return key not in self.except_


@dataclass(frozen=True)
class StandardVisit:
    """A full visit: every non on-demand prop is resolved."""

    is_partial = False


@dataclass(frozen=True)
class PartialReload:
    """A partial data reload scoped by a :class:`PartialReloadSpec`."""

    spec: PartialReloadSpec
    is_partial = True


RequestKind = Union[StandardVisit, PartialReload]

STANDARD_VISIT: "Final[StandardVisit]" = StandardVisit()


@dataclass
class TemporarySession:
    """Per-request flash data carried across a redirect.

    Attributes:
        errors: Validation errors from the previous request, if any.
        prev_req_url: The URL of the last page rendered for this client.
    """

    errors: "dict[str, Any] | None" = None
    prev_req_url: str = "/"
