"""Client codes and search."""

from typing import Iterable, TypeVar

from .models import ClientView

C = TypeVar("C", bound=ClientView)


def format_client_code(code: int) -> str:
    """Display form of a client code: 1 -> "#01", 123 -> "#123"."""
    return f"#{code:02d}"


def normalize_client_code_query(query: str) -> str:
    """Strip a leading '#' and leading zeros so "#01", "01" and "1" compare equal."""
    cleaned = query.strip().removeprefix("#").lstrip("0")
    return cleaned or "0"


def matches_client_code_query(code: int, query: str) -> bool:
    return str(code) == normalize_client_code_query(query)


def search_clients(clients: Iterable[C], query: str) -> list[C]:
    """Case-insensitive match on code, name or mobile number."""
    query = query.strip()
    if not query:
        return list(clients)

    needle = query.lower()
    return [
        client for client in clients
        if matches_client_code_query(client.code, query)
        or needle in client.name.lower()
        or needle in client.mobile_number
    ]
