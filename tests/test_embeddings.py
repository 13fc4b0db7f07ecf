"""Tests for the embeddings translation."""

import pytest
from fastapi.responses import JSONResponse
from starlette.requests import Request


async def single_embedding(request: Request) -> JSONResponse:
    return JSONResponse({"embedding": [0.1, 0.2, 0.3]})


async def batch_embedding(request: Request) -> JSONResponse:
    return JSONResponse({
        "embedding_batch": [
            [0.1, 0.2, 0.3],
            [0.4, 0.5, 0.6],
            [0.7, 0.8, 0.9],
        ],
        "prompt_eval_count": 3,
    })


class TestEmbeddings:
    """Single and batch embedding requests."""

    def test_single_input(self, make_client, native) -> None:
        client = make_client(embeddings=single_embedding)

        response = client.post("/v1/embeddings", json={"input": "Hello", "model": "test-model"})

        assert response.status_code == 200
        assert native.calls[0]["path"] == "/api/embeddings"
        assert native.calls[0]["body"] == {"model": "test-model", "prompt": "Hello"}

        data = response.json()
        assert data["object"] == "list"
        assert data["model"] == "test-model"
        assert data["data"] == [{"object": "embedding", "index": 0, "embedding": [0.1, 0.2, 0.3]}]

    def test_batch_input(self, make_client, native) -> None:
        client = make_client(embeddings=batch_embedding)

        response = client.post("/v1/embeddings", json={
            "input": ["Hello", "World", "Again"],
            "model": "test-model",
        })

        assert response.status_code == 200
        assert native.calls[0]["body"] == {
            "model": "test-model",
            "prompt_batch": ["Hello", "World", "Again"],
        }

        data = response.json()
        assert data["object"] == "list"
        assert data["model"] == "test-model"
        assert [e["index"] for e in data["data"]] == [0, 1, 2]
        assert {e["object"] for e in data["data"]} == {"embedding"}
        assert data["data"][0]["embedding"] == [0.1, 0.2, 0.3]
        assert data["data"][2]["embedding"] == [0.7, 0.8, 0.9]
        assert data["usage"] == {"prompt_tokens": 3, "total_tokens": 3}

    def test_single_vector_for_one_element_batch(self, make_client) -> None:
        client = make_client(embeddings=single_embedding)

        response = client.post("/v1/embeddings", json={"input": ["Hello"], "model": "test-model"})

        assert response.status_code == 200
        assert len(response.json()["data"]) == 1

    def test_count_mismatch_is_server_error(self, make_client) -> None:
        client = make_client(embeddings=batch_embedding)

        response = client.post("/v1/embeddings", json={"input": ["Hello", "World"], "model": "test-model"})

        assert response.status_code == 500
        assert "3 embeddings for 2 inputs" in response.json()["error"]

    def test_no_vectors_is_server_error(self, make_client) -> None:
        async def empty(request: Request) -> JSONResponse:
            return JSONResponse({})

        client = make_client(embeddings=empty)

        response = client.post("/v1/embeddings", json={"input": "Hello", "model": "test-model"})

        assert response.status_code == 500

    @pytest.mark.parametrize("bad_input", ["", [], ["ok", 3]])
    def test_invalid_input(self, make_client, native, bad_input) -> None:
        client = make_client(embeddings=single_embedding)

        response = client.post("/v1/embeddings", json={"input": bad_input, "model": "test-model"})

        assert response.status_code == 400
        assert "input" in response.json()["error"]
        assert native.calls == []

    def test_unknown_model(self, make_client) -> None:
        async def missing(request: Request) -> JSONResponse:
            return JSONResponse({"error": "model 'nope' not found, try pulling it first"}, status_code=404)

        client = make_client(embeddings=missing)

        response = client.post("/v1/embeddings", json={"input": "Hello", "model": "nope"})

        assert response.status_code == 404
        assert response.json() == {"error": "model 'nope' not found, try pulling it first"}
