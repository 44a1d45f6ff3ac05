"""
Shared test fixtures.

Provides: HelperConfig, client environment, in-memory Qdrant and OpenAI-style
embedding backends served through httpx.MockTransport, booted clients, and a
generator for small valid PDF files.
"""

import hashlib
import json
import logging

import httpx
import pytest

from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.helper.HelperConfig import HelperConfig

QDRANT_URL = "http://qdrant.test"
OPENAI_URL = "http://openai.test/v1"
COLLECTION = "test-collection"
FAKE_DIMENSION = 8


##########################################
################ BACKENDS ################
##########################################

class FakeQdrant:
    """Minimal in-memory implementation of the Qdrant REST endpoints used by RAGClientQdrant.

    Setting `fail_upserts` drops that many point upserts with a connection error.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.unreachable = False
        self.fail_upserts = 0

    def add_collection(self, name: str, size: int, distance: str = "Cosine") -> None:
        self.collections[name] = {"size": size, "distance": distance, "points": {}}

    def points(self, name: str = COLLECTION) -> dict[str, dict]:
        return self.collections.get(name, {}).get("points", {})

    @staticmethod
    def _matches(point: dict, filter: dict | None) -> bool:
        if not filter:
            return True
        for cond in filter.get("must", []):
            if point["payload"].get(cond["key"]) != cond["match"]["value"]:
                return False
        for cond in filter.get("must_not", []):
            if point["id"] in cond.get("has_id", []):
                return False
        return True

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)

        parts = request.url.path.strip("/").split("/")
        if parts == ["healthz"]:
            return httpx.Response(200, text="healthz check passed")
        if len(parts) < 2 or parts[0] != "collections":
            return httpx.Response(404, json={"status": {"error": "Not found"}})

        name, rest = parts[1], parts[2:]
        body = json.loads(request.content) if request.content else {}
        collection = self.collections.get(name)

        if rest == ["exists"]:
            return httpx.Response(200, json={"result": {"exists": collection is not None}, "status": "ok"})
        if rest == [] and request.method == "PUT":
            if collection is not None:
                return httpx.Response(409, json={"status": {"error": f"Collection `{name}` already exists!"}})
            self.add_collection(name, body["vectors"]["size"], body["vectors"]["distance"])
            return httpx.Response(200, json={"result": True, "status": "ok"})
        if collection is None:
            return httpx.Response(404, json={"status": {"error": f"Collection `{name}` doesn't exist!"}})
        if rest == [] and request.method == "GET":
            vectors = {"size": collection["size"], "distance": collection["distance"]}
            return httpx.Response(200, json={"result": {"config": {"params": {"vectors": vectors}}}, "status": "ok"})

        if rest == ["points"] and request.method == "PUT":
            if self.fail_upserts > 0:
                self.fail_upserts -= 1
                raise httpx.ConnectError("connection reset", request=request)
            for point in body["points"]:
                if len(point["vector"]) != collection["size"]:
                    return httpx.Response(400, json={"status": {"error": "Wrong input: Vector dimension error"}})
            for point in body["points"]:
                collection["points"][str(point["id"])] = point
            return httpx.Response(200, json={"result": {"status": "completed"}, "status": "ok"})
        if rest == ["points"] and request.method == "POST":
            found = [collection["points"][str(i)] for i in body["ids"] if str(i) in collection["points"]]
            return httpx.Response(200, json={"result": found, "status": "ok"})
        if rest == ["points", "count"]:
            count = sum(1 for p in collection["points"].values() if self._matches(p, body.get("filter")))
            return httpx.Response(200, json={"result": {"count": count}, "status": "ok"})
        if rest == ["points", "delete"]:
            doomed = [pid for pid, p in collection["points"].items() if self._matches(p, body.get("filter"))]
            for pid in doomed:
                del collection["points"][pid]
            return httpx.Response(200, json={"result": {"status": "completed"}, "status": "ok"})
        return httpx.Response(404, json={"status": {"error": "Not found"}})


def fake_vector(text: str, dimension: int = FAKE_DIMENSION) -> list[float]:
    """Deterministic pseudo-embedding derived from the text's SHA-256."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [byte / 255 for byte in digest[:dimension]]


class FakeOpenAI:
    """OpenAI-style /embeddings endpoint returning deterministic vectors.

    Items are returned in reverse order to exercise the index-based reordering.
    Statuses queued in `fail_statuses` are answered first, one per request.
    """

    def __init__(self, dimension: int = FAKE_DIMENSION) -> None:
        self.dimension = dimension
        self.fail_statuses: list[int] = []
        self.unreachable = False
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path.endswith("/models"):
            return httpx.Response(200, json={"data": []})
        if self.fail_statuses:
            status = self.fail_statuses.pop(0)
            return httpx.Response(status, json={"error": {"message": f"simulated status {status}"}})
        body = json.loads(request.content)
        data = [
            {"object": "embedding", "index": index, "embedding": fake_vector(text, self.dimension)}
            for index, text in enumerate(body["input"])
        ]
        return httpx.Response(200, json={"object": "list", "data": list(reversed(data)), "model": body["model"]})


##########################################
################ PDF FILES ###############
##########################################

def build_pdf(pages: list[str]) -> bytes:
    """Build a minimal valid PDF with one text page per entry, lines split on newlines."""
    page_ids = [4 + 2 * i for i in range(len(pages))]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for page_id, text in zip(page_ids, pages):
        ops = ["BT", "/F1 12 Tf", "14 TL", "72 720 Td"]
        for line in text.split("\n"):
            escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
            ops.append(f"({escaped}) Tj T*")
        ops.append("ET")
        stream = "\n".join(ops).encode("latin-1")
        objects.append(
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_id + 1} 0 R >>".encode()
        )
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"
    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode()
    return bytes(out)


##########################################
################ FIXTURES ################
##########################################

@pytest.fixture
def helper_config() -> HelperConfig:
    """Provide a HelperConfig with a plain test logger."""
    return HelperConfig(logger=logging.getLogger("tests"))


@pytest.fixture
def client_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Point both clients at the fake backends."""
    for key in ("EMBED_MODEL", "EMBED_OPENAI_DIMENSIONS", "RAG_QDRANT_API_KEY", "RAG_DISTANCE"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("EMBED_OPENAI_BASE_URL", OPENAI_URL)
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", QDRANT_URL)
    monkeypatch.setenv("RAG_QDRANT_COLLECTION", COLLECTION)


@pytest.fixture
def fake_qdrant() -> FakeQdrant:
    return FakeQdrant()


@pytest.fixture
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
async def rag_client(client_env, helper_config: HelperConfig, fake_qdrant: FakeQdrant):
    """Provide a booted RAGClientQdrant talking to the in-memory Qdrant."""
    client = RAGClientQdrant(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(fake_qdrant))
    yield client
    await client.close()


@pytest.fixture
async def embed_client(client_env, helper_config: HelperConfig, fake_openai: FakeOpenAI):
    """Provide a booted EmbedClientOpenai talking to the fake embedding endpoint."""
    client = EmbedClientOpenai(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(fake_openai))
    yield client
    await client.close()


@pytest.fixture
def pdf_factory(tmp_path):
    """Provide a function writing a PDF with the given page texts and returning its path."""

    def _make(pages: list[str], name: str = "sample.pdf") -> str:
        path = tmp_path / name
        path.write_bytes(build_pdf(pages))
        return str(path)

    return _make
