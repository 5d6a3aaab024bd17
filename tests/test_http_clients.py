"""
Tests for the HTTP clients (solver, OCR, blob fetch) and the file store.

All network traffic goes through httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from mathgrade.ai.mathpix_provider import MathpixProvider
from mathgrade.ai.wolfram_provider import WolframProvider
from mathgrade.core.exceptions import APIResponseError, JobNotFoundError
from mathgrade.core.models import AnswerKeyEntry, GradingResult, ImageInput
from mathgrade.processing.blob import FileBlobFetcher, HttpBlobFetcher, RoutingBlobFetcher
from mathgrade.processing.store import JsonFileStore


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def run(coro):
    return asyncio.run(coro)


# ==================== Wolfram ====================

def test_wolfram_returns_plain_text_answer():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, text="x = 4\n")

    solver = WolframProvider("app-123", client=mock_client(handler))
    result = run(solver.solve("2x + 5 = 13"))

    assert result.success
    assert result.answer == "x = 4"
    assert seen["params"]["i"] == "2x + 5 = 13"
    assert seen["params"]["appid"] == "app-123"


def test_wolfram_normalizes_latex_query():
    seen = {}

    def handler(request):
        seen["query"] = request.url.params["i"]
        return httpx.Response(200, text="3/4")

    solver = WolframProvider("app-123", client=mock_client(handler))
    run(solver.solve(r"\frac{1}{2} + \frac{1}{4} ="))

    assert seen["query"] == "(1)/(2) + (1)/(4)"


def test_wolfram_solve_batch_keeps_order():
    def handler(request):
        return httpx.Response(200, text=request.url.params["i"].replace(" ", ""))

    solver = WolframProvider("app-123", client=mock_client(handler))
    results = run(solver.solve_batch(["1 + 1", "2 * 3"]))

    assert [r.answer for r in results] == ["1+1", "2*3"]


def test_wolfram_uninterpretable_is_not_a_disagreement():
    solver = WolframProvider("app-123", client=mock_client(lambda r: httpx.Response(501, text="No short answer")))
    result = run(solver.solve("gibberish"))

    assert not result.success
    assert result.error == "Wolfram Alpha could not interpret the expression"


def test_wolfram_error_status():
    solver = WolframProvider("app-123", client=mock_client(lambda r: httpx.Response(403, text="Invalid appid")))
    result = run(solver.solve("1 + 1"))

    assert not result.success
    assert result.error.startswith("Wolfram Alpha API error: 403")


def test_wolfram_without_app_id_makes_no_call():
    def handler(request):
        raise AssertionError("no request expected")

    solver = WolframProvider("", client=mock_client(handler))
    result = run(solver.solve("1 + 1"))

    assert not solver.is_available
    assert not result.success


def test_wolfram_network_error_never_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    solver = WolframProvider("app-123", client=mock_client(handler))
    result = run(solver.solve("1 + 1"))

    assert not result.success
    assert "Connection failed" in result.error


# ==================== Mathpix ====================

def test_mathpix_sends_data_url_and_reads_confidence():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["headers"] = request.headers
        return httpx.Response(200, json={"text": "1. 6 x 7 =", "latex_styled": "6 \\times 7", "confidence": 0.93})

    ocr = MathpixProvider("id", "key", client=mock_client(handler))
    result = run(ocr.extract(ImageInput.from_bytes(b"png", "image/png")))

    assert result.success
    assert result.text == "1. 6 x 7 ="
    assert result.latex == "6 \\times 7"
    assert result.confidence == 0.93
    assert seen["body"]["src"].startswith("data:image/png;base64,")
    assert seen["headers"]["app_id"] == "id"


def test_mathpix_passes_url_images_through():
    seen = {}

    def handler(request):
        seen["src"] = json.loads(request.content)["src"]
        return httpx.Response(200, json={"text": "x"})

    ocr = MathpixProvider("id", "key", client=mock_client(handler))
    run(ocr.extract(ImageInput.from_url("https://cdn.example.com/hw.jpg")))

    assert seen["src"] == "https://cdn.example.com/hw.jpg"


def test_mathpix_falls_back_to_confidence_rate_then_default():
    replies = [{"text": "a", "confidence_rate": 0.6}, {"text": "b"}]

    def handler(request):
        return httpx.Response(200, json=replies.pop(0))

    ocr = MathpixProvider("id", "key", client=mock_client(handler))
    image = ImageInput.from_bytes(b"png", "image/png")

    assert run(ocr.extract(image)).confidence == 0.6
    assert run(ocr.extract(image)).confidence == 0.8


def test_mathpix_error_status():
    ocr = MathpixProvider("id", "key", client=mock_client(lambda r: httpx.Response(500, text="boom")))
    result = run(ocr.extract(ImageInput.from_bytes(b"png", "image/png")))

    assert not result.success
    assert result.error.startswith("Mathpix API error: 500")


def test_mathpix_not_configured():
    result = run(MathpixProvider("", "").extract(ImageInput.from_bytes(b"png")))

    assert not result.success
    assert "not configured" in result.error


# ==================== Blob fetch ====================

def test_http_fetcher_uses_content_type_header():
    def handler(request):
        return httpx.Response(200, content=b"img", headers={"content-type": "image/PNG; charset=binary"})

    fetcher = HttpBlobFetcher(client=mock_client(handler))
    data, content_type = run(fetcher.fetch("https://cdn.example.com/a"))

    assert data == b"img"
    assert content_type == "image/png"


def test_http_fetcher_raises_classified_error():
    fetcher = HttpBlobFetcher(client=mock_client(lambda r: httpx.Response(404)))

    with pytest.raises(APIResponseError) as exc_info:
        run(fetcher.fetch("https://cdn.example.com/missing.png"))
    assert not exc_info.value.retryable

    fetcher = HttpBlobFetcher(client=mock_client(lambda r: httpx.Response(503)))
    with pytest.raises(APIResponseError) as exc_info:
        run(fetcher.fetch("https://cdn.example.com/busy.png"))
    assert exc_info.value.retryable


def test_file_fetcher_reads_relative_to_base_dir(tmp_path):
    (tmp_path / "scan.png").write_bytes(b"png-bytes")
    fetcher = FileBlobFetcher(str(tmp_path))

    assert run(fetcher.fetch("scan.png")) == (b"png-bytes", "image/png")
    assert run(fetcher.fetch(f"file://{tmp_path / 'scan.png'}")) == (b"png-bytes", "image/png")


def test_routing_fetcher(tmp_path):
    (tmp_path / "page.jpg").write_bytes(b"jpg")
    http = HttpBlobFetcher(client=mock_client(lambda r: httpx.Response(200, content=b"remote")))
    fetcher = RoutingBlobFetcher(http, FileBlobFetcher(str(tmp_path)))

    assert run(fetcher.fetch("https://cdn.example.com/x.png")) == (b"remote", "image/png")
    assert run(fetcher.fetch("page.jpg")) == (b"jpg", "image/jpeg")


# ==================== File store ====================

def test_store_round_trips_submission_and_result(tmp_path):
    store = JsonFileStore(str(tmp_path))
    key = [AnswerKeyEntry(question_number=1, correct_answer="42", alternates=["forty-two"])]
    store.add_submission("proj-1", "sub-1", "scans/sub-1.png", key)

    payload = store.load("sub-1", "proj-1")
    assert payload.image_ref == "scans/sub-1.png"
    assert payload.answer_key == key

    result = GradingResult(submission_id="sub-1", success=True, total_score=1, total_possible=1, percentage=100)
    result_id = store.save(result, "proj-1")
    assert store.load_result("proj-1", result_id) == result


def test_store_missing_submission(tmp_path):
    with pytest.raises(JobNotFoundError):
        JsonFileStore(str(tmp_path)).load("nope", "proj-1")
