import json

import httpx
import pytest

from storyflow.config import RetrievalConfig
from storyflow.errors import TransientError
from storyflow.retrieval import (
    DocumentRetriever,
    HttpEmbedder,
    InMemoryVectorIndex,
    build_retriever,
    chunk_text,
    cosine_similarity,
)


class TableEmbedder:
    def __init__(self, table):
        self.table = table

    async def embed(self, text):
        return self.table[text]


def test_cosine_similarity():
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([0, 0], [1, 1]) == 0.0
    with pytest.raises(ValueError):
        cosine_similarity([1], [1, 2])


@pytest.mark.asyncio
async def test_retriever_ranks_and_filters_by_project():
    embedder = TableEmbedder(
        {
            "login flow": [1.0, 0.0],
            "billing rules": [0.0, 1.0],
            "login policy": [0.9, 0.1],
            "how does login work": [1.0, 0.05],
        }
    )
    retriever = DocumentRetriever(embedder, InMemoryVectorIndex(), top_k=2)
    await retriever.add_document("login flow", "p1", {"document_id": "d1"})
    await retriever.add_document("billing rules", "p1")
    await retriever.add_document("login policy", "p2")

    hits = await retriever.search("how does login work", project_id="p1")

    assert [hit.content for hit in hits] == ["login flow", "billing rules"]
    assert hits[0].metadata == {"document_id": "d1", "project_id": "p1"}
    assert len(await retriever.search("how does login work", k=1)) == 1


@pytest.mark.asyncio
async def test_http_embedder_posts_input_and_model():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2]}]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    embedder = HttpEmbedder(api_key="k", model="m", url="https://embed.test/v1", client=client)

    assert await embedder.embed("hello") == [0.1, 0.2]
    assert seen["body"] == {"input": "hello", "model": "m"}
    assert seen["auth"] == "Bearer k"


@pytest.mark.asyncio
async def test_http_embedder_errors_are_transient():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    embedder = HttpEmbedder(api_key="k", url="https://embed.test/v1", client=client)

    with pytest.raises(TransientError):
        await embedder.embed("hello")


def test_build_retriever_requires_enabled_and_key():
    assert build_retriever(RetrievalConfig()) is None
    assert build_retriever(RetrievalConfig(enabled=True)) is None
    retriever = build_retriever(RetrievalConfig(enabled=True, api_key="k", top_k=5))
    assert isinstance(retriever, DocumentRetriever)
    assert isinstance(retriever.index, InMemoryVectorIndex)
    assert retriever.top_k == 5


class LengthEmbedder:
    def __init__(self):
        self.texts = []

    async def embed(self, text):
        self.texts.append(text)
        return [float(len(text)), 1.0]


def test_chunk_text_keeps_whole_sentences():
    text = "First sentence here. Second one! A third? And the last one."

    chunks = chunk_text(text, chunk_size=40)

    assert chunks == ["First sentence here. Second one!", "A third? And the last one."]
    assert " ".join(chunks) == text


def test_chunk_text_edge_cases():
    assert chunk_text("   ") == []
    assert chunk_text("Short text without a full stop") == ["Short text without a full stop"]
    long_sentence = "word " * 50 + "end."
    assert chunk_text(f"Intro. {long_sentence}", chunk_size=20) == ["Intro.", long_sentence.strip()]
    with pytest.raises(ValueError):
        chunk_text("x", chunk_size=0)


@pytest.mark.asyncio
async def test_ingest_embeds_every_chunk_with_document_metadata():
    embedder = LengthEmbedder()
    index = InMemoryVectorIndex()
    retriever = DocumentRetriever(embedder, index)

    count = await retriever.ingest(
        "Passwords expire yearly. Reset links last an hour.",
        "p1",
        document_id="doc-1",
        metadata={"title": "Policy"},
        chunk_size=30,
    )

    assert count == 2
    assert embedder.texts == ["Passwords expire yearly.", "Reset links last an hour."]
    hits = await retriever.search("Reset links", project_id="p1", k=5)
    assert {hit.metadata["chunk_index"] for hit in hits} == {0, 1}
    assert all(hit.metadata["document_id"] == "doc-1" for hit in hits)
    assert all(hit.metadata["title"] == "Policy" for hit in hits)
    assert await retriever.search("Reset links", project_id="p2") == []
