"""
Shared fixtures for the context vector test suite.

Provides: environment baseline, in-memory fakes of the Qdrant and OpenAI
REST APIs served through httpx.MockTransport, booted clients and a wired
ContextVectorService.
"""

import json
import logging
import math
import re

import httpx
import pytest
import pytest_asyncio

from services.context_vectors.ContextVectorService import ContextVectorService
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.models.config import ContextVectorSettings

QDRANT_URL = "http://qdrant.test:6333"
EMBED_URL = "http://embed.test/v1"
COLLECTION = "context_files"

# one dimension per word, the last one collects every other token
VOCABULARY = [
    "alpha", "beta", "gamma", "delta", "epsilon", "zeta", "theta", "iota",
    "kappa", "lambda", "omega", "roadmap", "budget", "release", "sprint",
]
DIMENSION = len(VOCABULARY) + 1


def bag_of_words(text: str) -> list[float]:
    vector = [0.0] * DIMENSION
    for token in re.findall(r"[a-z0-9]+", text.lower()):
        index = VOCABULARY.index(token) if token in VOCABULARY else DIMENSION - 1
        vector[index] += 1.0
    return vector


def cosine(a: list[float], b: list[float]) -> float:
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / norm


class FakeQdrant:
    """Minimal in-memory implementation of the Qdrant REST endpoints used by RAGClientQdrant."""

    def __init__(self) -> None:
        self.collections: dict[str, dict] = {}
        self.points: dict[str, dict[str, dict]] = {}
        self.requests: list[tuple[str, str]] = []
        self.create_calls = 0
        self.fail_on: set[str] = set()
        self.healthy = True
        self.upsert_waits: list[str | None] = []

    # ---------- helpers used by tests ----------

    def stored(self, context_id: str | None = None, file_id: str | None = None) -> list[dict]:
        points = self.points.get(COLLECTION, {}).values()
        return [
            p for p in points
            if (context_id is None or p["payload"]["context_id"] == context_id)
            and (file_id is None or p["payload"]["file_id"] == file_id)
        ]

    # ---------- transport ----------

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))
        if path == "/healthz":
            return httpx.Response(200 if self.healthy else 503, text="healthz check passed")

        parts = path.strip("/").split("/")
        if len(parts) < 2 or parts[0] != "collections":
            return httpx.Response(404, json={"status": {"error": "not found"}})
        name = parts[1]
        rest = "/".join(parts[2:])
        body = json.loads(request.content) if request.content else {}

        if rest == "exists" and request.method == "GET":
            return self._ok({"exists": name in self.collections})
        if rest == "" and request.method == "GET":
            if name not in self.collections:
                return httpx.Response(404, json={"status": {"error": f"Collection `{name}` doesn't exist!"}})
            return self._ok({"status": "green", "config": {"params": {"vectors": self.collections[name]}}})
        if rest == "" and request.method == "PUT":
            self.create_calls += 1
            if "create" in self.fail_on:
                return httpx.Response(500, json={"status": {"error": "boom"}})
            if name in self.collections:
                return httpx.Response(409, json={"status": {"error": "already exists"}})
            self.collections[name] = dict(body["vectors"])
            self.points[name] = {}
            return self._ok(True)
        if name not in self.collections:
            return httpx.Response(404, json={"status": {"error": f"Collection `{name}` doesn't exist!"}})
        if rest == "index" and request.method == "PUT":
            if "index" in self.fail_on:
                return httpx.Response(500, json={"status": {"error": "boom"}})
            return self._ok({"status": "completed"})
        if rest == "points" and request.method == "PUT":
            return self._upsert(name, body, request.url.params.get("wait"))
        if rest == "points/delete" and request.method == "POST":
            return self._delete(name, body)
        if rest == "points/search" and request.method == "POST":
            return self._search(name, body)
        return httpx.Response(404, json={"status": {"error": "unknown endpoint"}})

    def _ok(self, result) -> httpx.Response:
        return httpx.Response(200, json={"result": result, "status": "ok", "time": 0.001})

    def _upsert(self, name: str, body: dict, wait: str | None) -> httpx.Response:
        if "upsert" in self.fail_on:
            return httpx.Response(500, json={"status": {"error": "upsert failed"}})
        self.upsert_waits.append(wait)
        size = self.collections[name]["size"]
        for point in body["points"]:
            if len(point["vector"]) != size:
                return httpx.Response(400, json={"status": {"error": "Wrong input: Vector dimension error"}})
        for point in body["points"]:
            self.points[name][point["id"]] = point
        return self._ok({"operation_id": len(self.requests), "status": "completed"})

    def _delete(self, name: str, body: dict) -> httpx.Response:
        if "delete" in self.fail_on:
            return httpx.Response(500, json={"status": {"error": "delete failed"}})
        condition = body["filter"]
        doomed = [pid for pid, p in self.points[name].items() if self._matches(p["payload"], condition)]
        for pid in doomed:
            del self.points[name][pid]
        return self._ok({"operation_id": len(self.requests), "status": "completed"})

    def _search(self, name: str, body: dict) -> httpx.Response:
        if "search" in self.fail_on:
            return httpx.Response(500, json={"status": {"error": "search failed"}})
        candidates = [
            p for p in self.points[name].values()
            if self._matches(p["payload"], body.get("filter") or {})
        ]
        scored = sorted(
            ({"id": p["id"], "version": 0, "score": cosine(body["vector"], p["vector"]), "payload": p["payload"]} for p in candidates),
            key=lambda hit: hit["score"],
            reverse=True,
        )
        return self._ok(scored[: body["limit"]])

    def _matches(self, payload: dict, condition: dict) -> bool:
        for clause in condition.get("must", []):
            value = payload.get(clause["key"])
            match = clause["match"]
            if "value" in match and value != match["value"]:
                return False
            if "any" in match and value not in match["any"]:
                return False
        return True


class FakeEmbedder:
    """OpenAI-compatible /embeddings endpoint returning bag-of-words vectors."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.fail = False
        self.drop_last = False
        self.shuffle = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/models"):
            return httpx.Response(200, json={"object": "list", "data": []})
        body = json.loads(request.content)
        texts = body["input"]
        self.calls.append(list(texts))
        if self.fail:
            return httpx.Response(429, json={"error": {"message": "Rate limit reached"}})
        data = [
            {"object": "embedding", "index": index, "embedding": bag_of_words(text)}
            for index, text in enumerate(texts)
        ]
        if self.drop_last:
            data = data[:-1]
        if self.shuffle:
            data = list(reversed(data))
        return httpx.Response(200, json={"object": "list", "data": data, "model": body["model"]})


@pytest.fixture(autouse=True)
def env(monkeypatch):
    """Baseline environment for every test."""
    for key in ("OPENAI_API_KEY", "RAG_QDRANT_PORT", "RAG_ENGINE", "EMBED_ENGINE", "EMBED_MODEL"):
        monkeypatch.delenv(key, raising=False)
    values = {
        "RAG_QDRANT_BASE_URL": QDRANT_URL,
        "RAG_QDRANT_COLLECTION": COLLECTION,
        "EMBED_OPENAI_BASE_URL": EMBED_URL,
        "EMBED_OPENAI_API_KEY": "sk-test",
        "EMBED_DIMENSION": str(DIMENSION),
        "CHUNK_SIZE": "10",
        "CHUNK_OVERLAP": "2",
        "EMBED_BATCH_SIZE": "2",
        "APP_API_KEY": "app-key",
        "LOG_TO_FILE": "false",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("context_vectors.tests")))


@pytest.fixture
def fake_qdrant() -> FakeQdrant:
    return FakeQdrant()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest_asyncio.fixture
async def rag_client(helper_config, fake_qdrant):
    client = RAGClientQdrant(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(fake_qdrant.handler))
    yield client
    await client.close()


@pytest_asyncio.fixture
async def embed_client(helper_config, fake_embedder):
    client = EmbedClientOpenai(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(fake_embedder.handler))
    yield client
    await client.close()


@pytest.fixture
def settings(helper_config) -> ContextVectorSettings:
    return ContextVectorSettings.from_helper_config(helper_config)


@pytest.fixture
def service(helper_config, rag_client, embed_client, settings) -> ContextVectorService:
    return ContextVectorService(
        helper_config=helper_config,
        rag_client=rag_client,
        embed_client=embed_client,
        settings=settings,
    )
