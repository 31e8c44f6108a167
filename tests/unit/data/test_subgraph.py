"""Tests for subgraph query builders and SubgraphProvider."""

import json

import httpx
import pytest

from ssv_automate.core.errors import SubgraphError
from ssv_automate.core.types import ClusterSnapshot
from ssv_automate.data.subgraph import (
    SubgraphProvider,
    build_cluster_snapshot_query,
    build_nonce_query,
    build_validator_added_query,
    cluster_id,
)
from tests.factories import OWNER, make_pubkey


def _provider(settings, handler) -> SubgraphProvider:
    return SubgraphProvider(settings, transport=httpx.MockTransport(handler))


def _graphql(data=None, errors=None):
    def handler(request: httpx.Request) -> httpx.Response:
        body = {"data": data}
        if errors is not None:
            body["errors"] = errors
        return httpx.Response(200, json=body)

    return handler


class TestQueryBuilders:
    @pytest.mark.parametrize(
        "txhashes",
        [
            [],
            ["0x" + "aa" * 32],
            ["0x" + "bb" * 32, "0x" + "aa" * 32, "0x" + "bb" * 32],
            ["not-a-hash", ""],
        ],
    )
    def test_validator_added_query_embeds_exact_txhashes(self, txhashes):
        body = build_validator_added_query(txhashes)
        assert body["variables"] == {"txhashes": txhashes}
        assert "$txhashes" in body["query"]
        assert "transactionHash_in" in body["query"]

    def test_validator_added_query_does_not_alias_input(self):
        txhashes = ["0x01"]
        body = build_validator_added_query(txhashes)
        txhashes.append("0x02")
        assert body["variables"]["txhashes"] == ["0x01"]

    def test_nonce_query_lowercases_owner(self):
        assert build_nonce_query(OWNER)["variables"] == {"owner": OWNER.lower()}

    def test_cluster_id(self):
        assert cluster_id(OWNER, [1, 2, 3, 42]) == f"{OWNER.lower()}-1-2-3-42"
        body = build_cluster_snapshot_query(OWNER, [1, 2, 3, 42])
        assert body["variables"]["cluster"] == f"{OWNER.lower()}-1-2-3-42"


class TestGetOwnerNonce:
    @pytest.mark.asyncio
    async def test_returns_nonce(self, settings):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"account": {"nonce": "7"}}})

        assert await _provider(settings, handler).get_owner_nonce(OWNER) == 7
        assert captured["url"] == settings.subgraph_api
        assert captured["body"]["variables"] == {"owner": OWNER.lower()}

    @pytest.mark.asyncio
    async def test_unknown_account_starts_at_zero(self, settings):
        provider = _provider(settings, _graphql({"account": None}))
        assert await provider.get_owner_nonce(OWNER) == 0

    @pytest.mark.asyncio
    async def test_http_failure_raises(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        with pytest.raises(SubgraphError, match="HTTP 503"):
            await _provider(settings, handler).get_owner_nonce(OWNER)

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self, settings):
        provider = _provider(settings, _graphql(None, errors=[{"message": "indexing error"}]))
        with pytest.raises(SubgraphError, match="indexing error"):
            await provider.get_owner_nonce(OWNER)


class TestGetClusterSnapshot:
    @pytest.mark.asyncio
    async def test_existing_cluster(self, settings):
        provider = _provider(
            settings,
            _graphql(
                {
                    "cluster": {
                        "validatorCount": "2",
                        "networkFeeIndex": "123456",
                        "index": "789",
                        "active": True,
                        "balance": "10000000000000000000",
                    }
                }
            ),
        )
        snapshot = await provider.get_cluster_snapshot(OWNER, [1, 2, 3, 4])
        assert snapshot.as_tuple() == (2, 123456, 789, True, 10 * 10**18)

    @pytest.mark.asyncio
    async def test_missing_cluster_is_empty(self, settings):
        provider = _provider(settings, _graphql({"cluster": None}))
        snapshot = await provider.get_cluster_snapshot(OWNER, [1, 2, 3, 4])
        assert snapshot == ClusterSnapshot()
        assert snapshot.as_tuple() == (0, 0, 0, True, 0)


class TestGetAccountClusters:
    @pytest.mark.asyncio
    async def test_parses_clusters(self, settings):
        pubkey = make_pubkey(1)
        provider = _provider(
            settings,
            _graphql(
                {
                    "account": {
                        "clusters": [
                            {
                                "id": f"{OWNER.lower()}-1-2-3-4",
                                "validatorCount": "1",
                                "networkFeeIndex": "10",
                                "index": "20",
                                "active": True,
                                "balance": "5",
                                "operatorIds": ["1", "2", "3", "4"],
                                "validators": [{"id": pubkey, "active": True}],
                            }
                        ]
                    }
                }
            ),
        )
        clusters = await provider.get_account_clusters(OWNER)
        assert len(clusters) == 1
        assert clusters[0].operator_ids == [1, 2, 3, 4]
        assert clusters[0].validators[0].id == pubkey
        assert clusters[0].snapshot().as_tuple() == (1, 10, 20, True, 5)

    @pytest.mark.asyncio
    async def test_unknown_account_has_no_clusters(self, settings):
        provider = _provider(settings, _graphql({"account": None}))
        assert await provider.get_account_clusters(OWNER) == []


class TestGetPubkeysFromTxhashes:
    @pytest.mark.asyncio
    async def test_returns_public_keys(self, settings):
        txhashes = ["0x" + "aa" * 32, "0x" + "bb" * 32]
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "data": {
                        "validatorAddeds": [
                            {"publicKey": make_pubkey(1)},
                            {"publicKey": make_pubkey(2)},
                        ]
                    }
                },
            )

        pubkeys = await _provider(settings, handler).get_pubkeys_from_txhashes(txhashes)
        assert pubkeys == [make_pubkey(1), make_pubkey(2)]
        assert captured["body"]["variables"]["txhashes"] == txhashes
