"""Type aliases for the firerest package.

This module provides reusable type definitions to ensure consistency
across the codebase and improve code readability.
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

# Decoded JSON as returned by a transport
JSON = Any

# Wire shapes
Value = Dict[str, Any]
Filter = Dict[str, Any]
Write = Dict[str, Any]
StructuredQuery = Dict[str, Any]

# Native field mappings accepted by writes
Fields = Mapping[str, Any]

# One path or many
Paths = Union[str, Sequence[str]]

# Masks for update(): True for every given field, or explicit names
Mask = Union[bool, Sequence[str], None]

Params = Optional[Mapping[str, Union[str, List[str]]]]


class Transport(Protocol):
    """HTTP collaborator that talks to the Firestore REST endpoint.

    Paths are relative to ``projects/<project>/databases/<database>/``.
    Implementations own authentication and raise on transport failures or
    error payloads; the client never inspects HTTP status codes itself.
    """

    def get(self, path: str, params: Params = None) -> JSON: ...

    def post(self, path: str, payload: JSON, params: Params = None) -> JSON: ...

    def patch(self, path: str, payload: JSON, params: Params = None) -> JSON: ...

    def delete(self, path: str, params: Params = None) -> JSON: ...
