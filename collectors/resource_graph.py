# collectors/resource_graph.py
from __future__ import annotations

from typing import Any

from azure.mgmt.resourcegraph import ResourceGraphClient
from azure.mgmt.resourcegraph.models import QueryRequest, QueryRequestOptions

from collectors.azure_client import build_client, get_shared_credential

SUBS_API = "2022-01-01"


def get_subscriptions() -> list[dict[str, str]]:
    """Enabled subscriptions visible to the current credential.

    Returns ``[{"subscription_id": ..., "display_name": ...}]`` in the
    order ARM lists them.
    """
    client = build_client()
    items = client.get_all("/subscriptions", api_version=SUBS_API)
    return [
        {"subscription_id": s["subscriptionId"], "display_name": s.get("displayName", "")}
        for s in items
        if s.get("state") == "Enabled"
    ]


def query_resource_graph(query: str, subscriptions: list[str], *, top: int = 1000) -> list[dict[str, Any]]:
    """Execute a Resource Graph query, following skip tokens until exhausted."""
    client = ResourceGraphClient(get_shared_credential())
    all_items: list[dict[str, Any]] = []
    skip_token: str | None = None

    while True:
        options = QueryRequestOptions(result_format="objectArray", top=top)
        if skip_token:
            options.skip_token = skip_token

        request = QueryRequest(subscriptions=subscriptions, query=query, options=options)
        response = client.resources(request)
        page = response.data if isinstance(response.data, list) else []
        all_items.extend(r for r in page if isinstance(r, dict))

        skip_token = getattr(response, "skip_token", None)
        if not skip_token or not page:
            break

    return all_items
