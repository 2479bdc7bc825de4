"""
Plan registry

Deployment plans register themselves by name so that the CLI can offer
them as --plan choices without a hand-maintained if/elif chain.

Usage:
    from .registry import register_plan

    @register_plan("ft_testnet", description="Deploy the FT contract to an existing account")
    async def ft_testnet(ctx):
        ...
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from ..utils.exceptions import ErrorCodes, NearDeployError

LOG = logging.getLogger(__name__)

PlanFunc = Callable[..., Awaitable[None]]


@dataclass
class PlanEntry:
    name: str
    func: PlanFunc
    description: str = ""
    requires_master: bool = True


class PlanRegistry:
    """Central registry for deployment plans"""

    def __init__(self):
        self._plans: Dict[str, PlanEntry] = {}

    def register(
        self,
        name: str,
        func: PlanFunc,
        description: str = "",
        requires_master: bool = True
    ) -> None:
        if name in self._plans:
            LOG.warning(f"Plan '{name}' already registered, overwriting")
        self._plans[name] = PlanEntry(name, func, description, requires_master)
        LOG.debug(f"Registered plan: {name}")

    def get(self, name: str) -> Optional[PlanEntry]:
        return self._plans.get(name)

    def require(self, name: str) -> PlanEntry:
        entry = self.get(name)
        if entry is None:
            raise NearDeployError(
                f"Unknown plan '{name}'. Available: {', '.join(self.list_all())}",
                code=ErrorCodes.PLAN_NOT_FOUND
            )
        return entry

    def list_all(self) -> List[str]:
        return sorted(self._plans.keys())


_registry = PlanRegistry()


def register_plan(name: str, description: str = "", requires_master: bool = True) -> Callable:
    """Decorator to register a plan function."""
    def decorator(func: PlanFunc) -> PlanFunc:
        _registry.register(name, func, description, requires_master)
        return func
    return decorator


def get_plan(name: str) -> PlanEntry:
    return _registry.require(name)


def list_plans() -> List[PlanEntry]:
    return [_registry.get(name) for name in _registry.list_all()]


def get_available_choices() -> List[str]:
    return _registry.list_all()
