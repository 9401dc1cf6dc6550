"""Response contracts for the Vault HTTP API.

A *contract* is anything ``pydantic.TypeAdapter`` understands: a model class,
a parametrised generic model such as ``ReadResponse[MySecret]``, or a plain
typing form such as ``dict[str, Any]``.  Only the fields this package (or a
typical caller) needs are declared; everything else Vault returns is ignored.
"""

from __future__ import annotations

import functools
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, TypeAdapter

DataT = TypeVar("DataT")

# Anything accepted by ``pydantic.TypeAdapter``, or a ready-made ``TypeAdapter``.
Contract = Any


def parse_body(contract: Contract, payload: Any) -> Any:
    """Validate a decoded JSON *payload* against *contract*.

    Raises ``pydantic.ValidationError`` when the payload does not match.
    """
    if isinstance(contract, TypeAdapter):
        return contract.validate_python(payload)
    try:
        adapter = _adapter_for(contract)
    except TypeError:
        # Unhashable contract, cannot be cached.
        adapter = TypeAdapter(contract)
    return adapter.validate_python(payload)


@functools.lru_cache(maxsize=256)
def _adapter_for(contract: Contract) -> TypeAdapter[Any]:
    return TypeAdapter(contract)


class ErrorResponse(BaseModel):
    errors: list[str]


class AuthData(BaseModel):
    """The ``auth`` block returned by login, renew and token-create calls."""

    client_token: str
    accessor: str
    policies: list[str] = Field(default_factory=list)
    token_policies: list[str] = Field(default_factory=list)
    lease_duration: int
    renewable: bool
    token_type: str = "service"


class LoginResponse(BaseModel):
    auth: AuthData


class GenericResponse(BaseModel, Generic[DataT]):
    data: DataT


class TokenLookupData(BaseModel):
    accessor: str
    renewable: bool
    ttl: int
    type: str = "service"


TokenLookupResponse = GenericResponse[TokenLookupData]


class ReadResponse(BaseModel, Generic[DataT]):
    """Envelope shared by secret-engine reads (KV v1, role-id, secret-id, ...)."""

    request_id: str
    lease_id: str
    renewable: bool
    lease_duration: int
    data: DataT
    warnings: list[str] | None = None


class KVMetadata(BaseModel):
    created_time: str
    custom_metadata: dict[str, str] | None = None
    deletion_time: str
    destroyed: bool
    version: int


class KVData(BaseModel, Generic[DataT]):
    """KV v2 nests the secret one level deeper, next to its version metadata."""

    data: DataT
    metadata: KVMetadata


def kv_read_response(model: Any) -> Any:
    """Contract for ``<mount>/data/<path>`` reads on a KV v2 engine."""
    return ReadResponse[KVData[model]]


class KVListData(BaseModel):
    keys: list[str]


KVListResponse = ReadResponse[KVListData]


class WrapInfo(BaseModel):
    token: str
    accessor: str
    ttl: int
    creation_time: str
    creation_path: str
    wrapped_accessor: str | None = None


class WrapResponse(BaseModel):
    """Returned instead of the real payload when ``X-Vault-Wrap-TTL`` is set."""

    request_id: str
    lease_id: str
    renewable: bool
    lease_duration: int
    data: Any = None
    wrap_info: WrapInfo


class WrappingLookupData(BaseModel):
    creation_path: str
    creation_time: str | None = None
    creation_ttl: int | None = None


WrappingLookupResponse = GenericResponse[WrappingLookupData]
