import importlib.util
import json
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(Path(__file__).resolve().parent))

_MISSING_DEPS = any(
    importlib.util.find_spec(name) is None for name in ("pydantic_settings", "httpx")
)

if not _MISSING_DEPS:
    import httpx

    from agrigen.application.services.context_retriever import (
        TAVILY_CONFIG_MESSAGE,
        TavilyContextRetriever,
        parse_search_payload,
    )
    from agrigen.domain.errors import PipelineError, PipelineErrorKind, PipelineStage
    from agrigen.prompts.annual_plan import NO_CONTEXT_SUMMARY
    from doubles import make_settings


_SEARCH_RESPONSE = {
    "answer": "Lahore has a semi-arid climate with monsoon rains in July and August.",
    "results": [
        {
            "title": "Climate of Lahore",
            "content": "Summers are very hot; winters are mild.",
            "url": "https://example.org/lahore-climate",
        },
        {"title": "Wheat in Punjab", "content": "Sown in November.", "url": ""},
    ],
}


@unittest.skipUnless(not _MISSING_DEPS, "httpx or pydantic_settings is not installed")
class TavilyContextRetrieverTests(unittest.TestCase):
    def _retriever(self, handler, **settings):
        self.requests = []

        def record(request):
            self.requests.append(request)
            return handler(request)

        return TavilyContextRetriever(
            make_settings(**settings), transport=httpx.MockTransport(record)
        )

    def test_successful_search_builds_bundle(self) -> None:
        retriever = self._retriever(lambda request: httpx.Response(200, json=_SEARCH_RESPONSE))
        bundle = retriever.retrieve("Agricultural information for Lahore", max_results=5, depth="advanced")

        self.assertEqual(bundle.summary, _SEARCH_RESPONSE["answer"])
        self.assertEqual(len(bundle.sources), 2)
        self.assertEqual(bundle.sources[0].excerpt, "Summers are very hot; winters are mild.")
        body = json.loads(self.requests[0].content)
        self.assertEqual(body["max_results"], 5)
        self.assertEqual(body["search_depth"], "advanced")
        self.assertTrue(body["include_answer"])
        self.assertEqual(self.requests[0].headers["Authorization"], "Bearer tvly-test")

    def test_missing_key_is_config_error_without_request(self) -> None:
        retriever = self._retriever(lambda request: httpx.Response(200, json={}), tavily_api_key=None)
        with self.assertRaises(PipelineError) as ctx:
            retriever.retrieve("query", max_results=5, depth="basic")

        self.assertEqual(ctx.exception.stage, PipelineStage.RETRIEVAL)
        self.assertEqual(ctx.exception.kind, PipelineErrorKind.INVOCATION_CONFIG_ERROR)
        self.assertEqual(ctx.exception.message, TAVILY_CONFIG_MESSAGE)
        self.assertEqual(self.requests, [])

    def test_server_error_is_retryable_failure(self) -> None:
        retriever = self._retriever(lambda request: httpx.Response(502, text="bad gateway"))
        with self.assertRaises(PipelineError) as ctx:
            retriever.retrieve("query", max_results=5, depth="advanced")

        self.assertEqual(ctx.exception.kind, PipelineErrorKind.CONTEXT_RETRIEVAL_FAILURE)
        self.assertTrue(ctx.exception.retryable)

    def test_rejected_key_is_retryable_failure_with_config_message(self) -> None:
        for status in (401, 403):
            retriever = self._retriever(
                lambda request, status=status: httpx.Response(status, json={"detail": "bad key"})
            )
            with self.assertRaises(PipelineError) as ctx:
                retriever.retrieve("query", max_results=5, depth="advanced")

            self.assertEqual(ctx.exception.kind, PipelineErrorKind.CONTEXT_RETRIEVAL_FAILURE)
            self.assertTrue(ctx.exception.retryable)
            self.assertEqual(ctx.exception.message, TAVILY_CONFIG_MESSAGE)
            self.assertEqual(ctx.exception.details, f"status {status}")

    def test_timeout_is_retryable_failure(self) -> None:
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        retriever = self._retriever(handler)
        with self.assertRaises(PipelineError) as ctx:
            retriever.retrieve("query", max_results=5, depth="advanced")

        self.assertEqual(ctx.exception.kind, PipelineErrorKind.CONTEXT_RETRIEVAL_FAILURE)

    def test_non_json_body_is_retrieval_failure(self) -> None:
        retriever = self._retriever(lambda request: httpx.Response(200, text="<html>"))
        with self.assertRaises(PipelineError) as ctx:
            retriever.retrieve("query", max_results=5, depth="advanced")

        self.assertEqual(ctx.exception.kind, PipelineErrorKind.CONTEXT_RETRIEVAL_FAILURE)


@unittest.skipUnless(not _MISSING_DEPS, "httpx or pydantic_settings is not installed")
class SearchPayloadTests(unittest.TestCase):
    def test_missing_answer_uses_default_summary(self) -> None:
        bundle = parse_search_payload({"results": []})
        self.assertEqual(bundle.summary, NO_CONTEXT_SUMMARY)
        self.assertEqual(bundle.sources, ())

    def test_non_object_payload_is_rejected(self) -> None:
        with self.assertRaises(PipelineError):
            parse_search_payload(["not", "an", "object"])


if __name__ == "__main__":
    unittest.main()
