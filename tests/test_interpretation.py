import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

import requests

from health_panel import ExtractedHealthVariant
from interpret_dna import interpret, load_health_snps
from interpretation_prompt import build_prompt, format_profile, format_snp_lines, parse_json_reply
from llm_client import (
    ChatCompletionClient,
    LLMAuthenticationError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
)

VARIANTS = [
    ExtractedHealthVariant("rs1801133", "1", 11856378, "AG", "MTHFR", "Folate metabolism (C677T)", "cardiovascular"),
    ExtractedHealthVariant("rs4988235", "2", 136608646, "AA", "MCM6/LCT", "Lactose tolerance", "nutrition"),
]


def _response(status: int, payload: dict | None = None, headers: dict | None = None) -> mock.Mock:
    response = mock.Mock(spec=requests.Response)
    response.status_code = status
    response.headers = headers or {}
    response.json.return_value = payload or {}
    return response


def _reply(content: str | None) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class PromptTests(unittest.TestCase):
    def test_snp_lines(self) -> None:
        self.assertEqual(
            format_snp_lines(VARIANTS),
            "rs1801133 (MTHFR): AG - Folate metabolism (C677T)\n"
            "rs4988235 (MCM6/LCT): AA - Lactose tolerance",
        )

    def test_prompt_carries_counts_source_and_markers(self) -> None:
        prompt = build_prompt("ancestry", 640000, VARIANTS)
        self.assertIn("(2 SNPs out of 640000 total)", prompt)
        self.assertIn('"source": "ancestry"', prompt)
        self.assertIn('"totalSnps": 640000', prompt)
        self.assertIn("rs4988235 (MCM6/LCT): AA - Lactose tolerance", prompt)
        self.assertIn("cardiovascular|metabolism|nutrition", prompt)
        self.assertNotIn("User profile", prompt)

    def test_profile_block(self) -> None:
        block = format_profile(
            {
                "firstName": "Sam",
                "sex": "female",
                "age": 41,
                "weight": 62,
                "height": 170,
                "sedentaryLevel": "moderate",
                "medicalConditions": "asthma",
            }
        )
        self.assertIn("- First name: Sam", block)
        self.assertIn("- Sex: Female", block)
        self.assertIn("- Age: 41 years", block)
        self.assertIn("- Medical conditions: asthma", block)
        self.assertNotIn("Medical conditions", format_profile({"firstName": "Sam"}))
        self.assertEqual(format_profile(None), "")

    def test_parse_json_reply_extracts_outer_object(self) -> None:
        reply = 'Here you go:\n```json\n{"overallScore": 72, "insights": [{"a": 1}]}\n```'
        self.assertEqual(parse_json_reply(reply), {"overallScore": 72, "insights": [{"a": 1}]})

    def test_parse_json_reply_errors(self) -> None:
        with self.assertRaises(ValueError):
            parse_json_reply("no json here")
        with self.assertRaises(ValueError):
            parse_json_reply("{not: valid}")


class ChatCompletionClientTests(unittest.TestCase):
    def _client(self, *responses: object) -> tuple[ChatCompletionClient, mock.Mock]:
        session = mock.Mock(spec=requests.Session)
        session.post.side_effect = list(responses)
        client = ChatCompletionClient("sk-test", model="test-model", base_url="https://llm.test/v1/", session=session)
        return client, session

    def test_complete_returns_message_content(self) -> None:
        client, session = self._client(_response(200, _reply('{"ok": true}')))
        self.assertEqual(client.complete("hello"), '{"ok": true}')
        args, kwargs = session.post.call_args
        self.assertEqual(args[0], "https://llm.test/v1/chat/completions")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk-test")
        self.assertEqual(kwargs["json"]["model"], "test-model")
        self.assertEqual(kwargs["json"]["messages"], [{"role": "user", "content": "hello"}])

    def test_unauthorized_raises_immediately(self) -> None:
        client, session = self._client(_response(401))
        with self.assertRaises(LLMAuthenticationError):
            client.complete("hello")
        self.assertEqual(session.post.call_count, 1)

    @mock.patch("llm_client.time.sleep")
    def test_rate_limit_retries_then_gives_up(self, sleep: mock.Mock) -> None:
        client, session = self._client(*[_response(429, headers={"Retry-After": "2"})] * 3)
        with self.assertRaises(LLMRateLimitError):
            client.complete("hello")
        self.assertEqual(session.post.call_count, 3)
        sleep.assert_called_with(2)

    @mock.patch("llm_client.time.sleep")
    def test_server_error_and_connection_error_are_retried(self, sleep: mock.Mock) -> None:
        client, session = self._client(
            requests.ConnectionError("boom"),
            _response(503),
            _response(200, _reply("done")),
        )
        self.assertEqual(client.complete("hello"), "done")
        self.assertEqual(session.post.call_count, 3)

    def test_empty_reply_raises(self) -> None:
        client, _ = self._client(_response(200, _reply("")))
        with self.assertRaises(LLMResponseError):
            client.complete("hello")

    def test_client_error_is_not_retried(self) -> None:
        client, session = self._client(_response(400))
        with self.assertRaises(LLMError):
            client.complete("hello")
        self.assertEqual(session.post.call_count, 1)

    def test_missing_api_key(self) -> None:
        with mock.patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(LLMAuthenticationError):
                ChatCompletionClient()


class InterpretTests(unittest.TestCase):
    def test_interpret_writes_result_and_summary(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            run_dir = Path(tmp)
            (run_dir / "health_snps.json").write_text(
                json.dumps(
                    {
                        "source": "23andme",
                        "total_snps": 600000,
                        "analyzed_snps": 2,
                        "panel_version": "2025.1",
                        "health_snps": [v.__dict__ for v in VARIANTS],
                    }
                ),
                encoding="utf-8",
            )
            client = mock.Mock(spec=ChatCompletionClient)
            client.model = "test-model"
            client.complete.return_value = 'Sure! {"overallScore": 81, "summary": "ok"}'
            with redirect_stdout(io.StringIO()):
                result = interpret(run_dir, client, {"firstName": "Sam"})

            self.assertEqual(result["overallScore"], 81)
            prompt = client.complete.call_args.args[0]
            self.assertIn("(2 SNPs out of 600000 total)", prompt)
            self.assertIn("- First name: Sam", prompt)
            saved = json.loads((run_dir / "interpretation.json").read_text(encoding="utf-8"))
            self.assertEqual(saved["summary"], "ok")
            summary = json.loads((run_dir / "summary.json").read_text(encoding="utf-8"))
            self.assertEqual(summary["overall_score"], 81)
            self.assertEqual(summary["interpretation_model"], "test-model")

    def test_missing_extract(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(FileNotFoundError):
                load_health_snps(Path(tmp) / "health_snps.json")


if __name__ == "__main__":
    unittest.main()
