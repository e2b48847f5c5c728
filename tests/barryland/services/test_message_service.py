"""Owner inbox calls issued by MessageService."""

import json

import httpx
import pytest
import pytest_asyncio
from pydantic import ValidationError

from barryland.client.http import BarrylandApiClient
from barryland.services.message_service import MessageService
from tests.barryland.fakes import PROPERTY_A

MESSAGE = {
    "_id": "65f1bb00bb00bb00bb00bb01",
    "firstName": "Awa",
    "lastName": "Traoré",
    "email": "awa@example.ci",
    "property": {"_id": PROPERTY_A, "title": "Villa Cocody"},
    "message": "Bonjour, la villa est-elle toujours disponible ?",
    "createdAt": "2025-01-12T10:00:00+00:00",
    "status": "nouveau",
    "read": False,
}


@pytest.fixture
def recorded():
    return []


@pytest_asyncio.fixture
async def service(recorded):
    def handler(request: httpx.Request) -> httpx.Response:
        recorded.append(request)
        if request.method == "GET" and request.url.path == "/api/messages":
            data = {"messages": [MESSAGE], "total": 1, "page": 1, "pages": 1}
            return httpx.Response(200, json={"success": True, "data": data})
        if request.method == "PATCH":
            changes = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "data": {**MESSAGE, **changes}})
        if request.method == "POST":
            return httpx.Response(201, json={"success": True, "data": MESSAGE})
        return httpx.Response(200, json={"success": True, "data": MESSAGE})

    api = BarrylandApiClient("http://testserver/api", transport=httpx.MockTransport(handler))
    yield MessageService(api)
    await api.aclose()


@pytest.mark.asyncio
async def test_get_messages_sends_only_set_filters(service, recorded):
    page = await service.get_messages(page=2, limit=5, property_id="", status="nouveau")

    assert dict(recorded[0].url.params) == {"page": "2", "limit": "5", "status": "nouveau"}
    assert page.total == 1
    assert page.messages[0].first_name == "Awa"


@pytest.mark.asyncio
async def test_update_message_sends_only_given_fields(service, recorded):
    updated = await service.update_message(MESSAGE["_id"], read=True)

    assert json.loads(recorded[0].content) == {"read": True}
    assert updated.read is True


@pytest.mark.asyncio
async def test_contact_owner_validates_before_sending(service, recorded):
    with pytest.raises(ValidationError):
        await service.contact_owner({"propertyId": PROPERTY_A, "message": ""})
    assert recorded == []

    sent = await service.contact_owner(
        {"propertyId": PROPERTY_A, "message": "Disponible ?", "email": "awa@example.ci"}
    )

    assert json.loads(recorded[0].content) == {
        "propertyId": PROPERTY_A,
        "message": "Disponible ?",
        "email": "awa@example.ci",
    }
    assert sent.id == MESSAGE["_id"]
