from typing import Iterable, List

from umrah_office.domain import Client


def client_matches(client: Client, query: str) -> bool:
    q = (query or "").strip().lower()
    if not q:
        return True
    return (
        q in (client.name or "").lower()
        or q in (client.passport_number or "").lower()
        or q in (client.phone or "")
    )


def search_clients(clients: Iterable[Client], query: str) -> List[Client]:
    return [c for c in clients if client_matches(c, query)]
