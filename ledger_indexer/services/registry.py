"""Handler registry.

Each handler group module registers its functions with `@handles`:

    @handles("CourseLicense", "LicenseMinted", LicenseMinted)
    def license_minted(ctx: HandlerContext, p: LicenseMinted) -> None: ...

The pipeline looks the (contract, event name) pair up in HANDLERS,
validates `event.params` against the registered payload model and calls
the handler with a HandlerContext.  A handler is a synchronous function
of (event, current snapshot): it reads through `ctx.uow`, stages its
writes there and returns nothing.  It signals a missing causal
dependency by raising DependencyMissing (see repos.accessors).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from ledger_indexer.core.config import Settings
from ledger_indexer.models.base import BlockRef
from ledger_indexer.models.events import LedgerEvent
from ledger_indexer.repos.unit_of_work import UnitOfWork
from ledger_indexer.services.chain_reader import ChainReader


@dataclass(frozen=True, slots=True)
class HandlerContext:
    event: LedgerEvent
    uow: UnitOfWork
    chain: ChainReader
    settings: Settings

    @property
    def at(self) -> BlockRef:
        return self.event.block_ref


Handler = Callable[[HandlerContext, Any], None]


@dataclass(frozen=True, slots=True)
class Registration:
    contract: str
    name: str
    params_model: type[BaseModel]
    handler: Handler


HANDLERS: dict[tuple[str, str], Registration] = {}


def handles(contract: str, name: str, params_model: type[BaseModel]):
    """Decorator: register a function as the handler for one event kind."""

    def decorator(func: Handler) -> Handler:
        key = (contract, name)
        if key in HANDLERS:
            raise ValueError(f"duplicate handler for {contract}.{name}")
        HANDLERS[key] = Registration(contract, name, params_model, func)
        return func

    return decorator
