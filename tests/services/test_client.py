"""
End-to-end tests for GraphitiClient against the fake network.
"""

import asyncio

import pytest

from services.client import GraphitiClient, memory_client
from services.distributed_reader import ResultSource
from storage.kv_store import MemoryKeyValueStore
from utils.content_address import content_address, privacy_tag
from utils.errors import AuthDenied, IdentityRequired, InvalidUrl

APPROVED = {"status": "approved", "session": "tok-1", "pubky": "pkA"}


class TestAddressing:

    def test_canonicalize_and_alias(self):
        assert GraphitiClient.canonicalize("HTTPS://Example.COM:443/?b=1&a=2#x") == "https://example.com/?a=2&b=1"
        assert GraphitiClient.normalize("https://example.com/?b=1&a=2") == "https://example.com/?a=2&b=1"

    def test_content_address_matches_util(self):
        assert GraphitiClient.content_address("https://example.com") == content_address("https://example.com")

    def test_privacy_tag_uses_canonical_form(self):
        assert GraphitiClient.privacy_tag("https://EXAMPLE.com/?b=1&a=2") == privacy_tag("https://example.com/?a=2&b=1")
        assert len(GraphitiClient.privacy_tag("https://example.com")) == 10

    def test_memory_client(self):
        client = memory_client()
        assert isinstance(client.kv, MemoryKeyValueStore)


@pytest.mark.asyncio
class TestPublishAndSearch:

    async def test_publish_requires_identity(self, client_factory, network):
        client = await client_factory()
        with pytest.raises(IdentityRequired):
            await client.publish("https://example.com")
        assert network.calls["store_put"] == 0

    async def test_publish_invalid_url(self, client_factory):
        client = await client_factory(my_pubkey="pkA")
        with pytest.raises(InvalidUrl):
            await client.publish("no scheme here")

    async def test_publish_then_peer_search(self, client_factory, network):
        """Index lags: the follower still finds the post by reading A's store."""
        author = await client_factory(my_pubkey="pkA")
        path = await author.publish("https://Example.com/x?b=2&a=1", tags=["python", " python"], note="good read")
        assert network.objects[path]["content"] == "https://example.com/x?a=1&b=2"
        assert network.objects[path]["tags"] == ["python"]

        follower = await client_factory(following=["pkA"])
        records = await follower.search("https://example.com/x?a=1&b=2#top")

        assert len(records) == 1
        assert records[0].author == "pkA"
        assert records[0].note == "good read"
        assert records[0].created_at > 0

    async def test_publish_invalidates_cached_search(self, client_factory, network):
        client = await client_factory(my_pubkey="pkA", following=["pkA"])

        assert await client.search("https://example.com/") == []
        reads = network.network_reads
        assert await client.search("https://example.com/") == []
        assert network.network_reads == reads

        await client.publish("https://example.com/", note="first")
        records = await client.search("https://example.com/")

        assert [r.note for r in records] == ["first"]
        assert network.network_reads > reads

    async def test_search_detailed(self, client_factory, network):
        network.index_body = [{"content": "https://example.com/", "created_at": 1, "author": "pkZ"}]
        client = await client_factory()

        result = await client.search_detailed("https://example.com/")

        assert result.source == ResultSource.INDEX
        assert result.items[0].author == "pkZ"
        assert result.to_dict()["canonical_url"] == "https://example.com/"


@pytest.mark.asyncio
class TestAuthorization:

    async def test_start_authorization_persists_session(self, client_factory, network):
        network.relay_statuses = [{"status": "pending"}, APPROVED]
        kv = MemoryKeyValueStore()
        client = await client_factory(kv=kv)

        assert await client.start_authorization() is True

        session = await client.get_session()
        assert session.identity == "pkA"
        assert client.identity() == "pkA"
        assert (await kv.get("session"))["token"] == "tok-1"
        assert (await kv.get("config"))["my_pubkey"] == "pkA"

        restarted = await client_factory(kv=kv)
        assert (await restarted.get_session()).identity == "pkA"
        assert restarted.config.my_pubkey == "pkA"

    async def test_session_token_used_for_publish(self, client_factory, network):
        network.relay_statuses = [APPROVED]
        client = await client_factory()
        await client.start_authorization()

        await client.publish("https://example.com/")

        assert network.put_headers[0]["authorization"] == "Bearer tok-1"

    async def test_denied(self, client_factory, network):
        network.relay_statuses = [{"status": "denied"}]
        client = await client_factory()
        with pytest.raises(AuthDenied):
            await client.start_authorization()
        assert await client.get_session() is None

    async def test_background_approval(self, client_factory, network):
        network.relay_statuses = [{"status": "pending"}, APPROVED]
        client = await client_factory()

        assert await client.start_authorization(await_approval=False) is True
        assert client.pending_authorization is not None

        await asyncio.wait_for(client.pending_authorization, timeout=2.0)
        assert client.identity() == "pkA"

    async def test_close_cancels_pending_authorization(self, client_factory):
        client = await client_factory(auth_deadline_seconds=30.0)
        await client.start_authorization(await_approval=False)
        task = client.pending_authorization

        await client.close()

        assert task.cancelled()
        assert client.pending_authorization is None

    async def test_sign_out(self, client_factory, network):
        network.relay_statuses = [APPROVED]
        kv = MemoryKeyValueStore()
        client = await client_factory(kv=kv)
        await client.start_authorization()

        await client.sign_out()

        assert await client.get_session() is None
        assert await kv.get("session") is None
        # Configured identity survives sign-out
        assert client.identity() == "pkA"


@pytest.mark.asyncio
class TestBookmarksAndConfig:

    async def test_bookmarks(self, client_factory, network):
        client = await client_factory()

        await client.set_bookmark("https://example.com/?b=1&a=2", tags=["later"], note="n")
        bookmark = await client.get_bookmark("https://EXAMPLE.com/?a=2&b=1")
        assert bookmark.tags == ("later",)

        await client.remove_bookmark("https://example.com/?a=2&b=1")
        assert await client.get_bookmark("https://example.com/?a=2&b=1") is None
        assert network.network_reads == 0

    async def test_set_config_persists_and_applies(self, client_factory, network):
        kv = MemoryKeyValueStore()
        client = await client_factory(kv=kv)

        updated = await client.set_config({"following": "pkA,pkB"})
        assert updated["following"] == ["pkA", "pkB"]

        await client.search("https://example.com/")
        assert network.index_params[-1]["authors"] == "pkA,pkB"

        restarted = await client_factory(kv=kv)
        assert (await restarted.get_config())["following"] == ["pkA", "pkB"]

    async def test_set_config_rejects_unknown(self, client_factory):
        client = await client_factory()
        with pytest.raises(ValueError):
            await client.set_config({"namespace": "x"})

    async def test_config_change_clears_cached_results(self, client_factory, network):
        author = await client_factory(my_pubkey="pkA")
        await author.publish("https://example.com/", note="from A")

        client = await client_factory()
        assert await client.search("https://example.com/") == []

        await client.set_config({"following": ["pkA"]})
        records = await client.search("https://example.com/")

        assert [r.author for r in records] == ["pkA"]
        assert network.calls["index"] == 2
