import asyncio
import json
import tempfile
import unittest
from pathlib import Path

import httpx
import respx
from support import (
    BAS_BASE,
    BAS_URL,
    SERVICE_KEY,
    TOKEN_RESPONSE,
    TOKEN_URL,
    collect,
    make_settings,
    model_deployment,
    service_key_env,
)

from aicore_llm.adapter import SapAiCoreAdapter
from aicore_llm.errors import ConfigurationError, MappingError
from aicore_llm.models import DEFAULT_MODEL_ID, SAP_AI_CORE_MODELS


async def _create(adapter: SapAiCoreAdapter, messages) -> list:
    return await collect(adapter.create_message("sys", messages))


class ConfigurationFailureTests(unittest.TestCase):
    def test_no_backend_fails_on_first_call(self) -> None:
        async def run() -> list:
            async with SapAiCoreAdapter(make_settings(), environ={}) as adapter:
                self.assertIsNone(adapter.backend)
                return await _create(adapter, [{"role": "user", "content": "hi"}])

        with self.assertRaisesRegex(ConfigurationError, "No SAP AI Core backend"):
            asyncio.run(run())

    def test_invalid_credentials_file_leaves_adapter_without_transport(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "service-key.json"
            path.write_text(json.dumps({**SERVICE_KEY, "serviceurls": {}}), encoding="utf-8")
            environ: dict[str, str] = {}

            async def run() -> list:
                async with SapAiCoreAdapter(make_settings(tmp), environ=environ) as adapter:
                    return await _create(adapter, [{"role": "user", "content": "hi"}])

            with self.assertLogs("aicore_llm.adapter", level="ERROR"):
                with self.assertRaises(ConfigurationError) as ctx:
                    asyncio.run(run())

        self.assertEqual(ctx.exception.missing_fields, ("serviceurls.AI_API_URL",))
        self.assertEqual(environ, {})

    def test_undecodable_credentials_file_leaves_adapter_without_transport(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "service-key.json").write_bytes(b'{"clientid": "\xff\xfe"}')

            with self.assertLogs("aicore_llm.adapter", level="ERROR"):
                adapter = SapAiCoreAdapter(make_settings(tmp), environ={})

        self.assertIsNone(adapter.backend)

        async def run() -> list:
            async with adapter:
                return await _create(adapter, [{"role": "user", "content": "hi"}])

        with self.assertRaisesRegex(ConfigurationError, "unreadable"):
            asyncio.run(run())


class CloseTests(unittest.TestCase):
    def test_aclose_stops_pending_discovery(self) -> None:
        async def run() -> tuple:
            adapter = SapAiCoreAdapter(make_settings(), environ=service_key_env())
            await adapter.aclose()
            return adapter._catalog._task.cancelled(), await adapter.list_models()

        with respx.mock(assert_all_called=False) as router:
            token = router.post(TOKEN_URL).mock(
                return_value=httpx.Response(200, json=TOKEN_RESPONSE)
            )
            cancelled, models = asyncio.run(run())

        self.assertTrue(cancelled)
        self.assertEqual(models, [])
        self.assertEqual(token.call_count, 0)


class CreateMessageTests(unittest.TestCase):
    def test_unsupported_part_fails_before_any_request(self) -> None:
        messages = [{"role": "user", "content": [{"type": "audio", "data": "..."}]}]

        async def run() -> list:
            async with SapAiCoreAdapter(make_settings(), environ={"H2O_URL": BAS_URL}) as adapter:
                return await _create(adapter, messages)

        with respx.mock(assert_all_called=False) as router:
            router.get(f"{BAS_BASE}/lm/scenarios/foundation-models/models").mock(
                return_value=httpx.Response(404)
            )
            router.get(f"{BAS_BASE}/lm/deployments").mock(
                return_value=httpx.Response(200, json={"resources": [model_deployment("d", DEFAULT_MODEL_ID)]})
            )
            completion = router.post(url__startswith=f"{BAS_BASE}/inference").mock(
                return_value=httpx.Response(200)
            )
            with self.assertRaises(MappingError):
                asyncio.run(run())

        self.assertEqual(completion.call_count, 0)

    def test_list_models_without_backend_is_empty(self) -> None:
        async def run() -> list:
            async with SapAiCoreAdapter(make_settings(), environ={}) as adapter:
                return await adapter.list_models()

        self.assertEqual(asyncio.run(run()), [])


class GetModelTests(unittest.TestCase):
    def test_configured_model(self) -> None:
        adapter = SapAiCoreAdapter(make_settings(model="gpt-4o"), environ={})
        model = adapter.get_model()
        self.assertEqual(model.id, "gpt-4o")
        self.assertEqual(model.info.context_window, 128_000)
        asyncio.run(adapter.aclose())

    def test_unknown_model_keeps_id_with_default_limits(self) -> None:
        adapter = SapAiCoreAdapter(make_settings(model="brand-new-model"), environ={})
        model = adapter.get_model()
        self.assertEqual(model.id, "brand-new-model")
        self.assertEqual(model.info, SAP_AI_CORE_MODELS[DEFAULT_MODEL_ID])
        self.assertEqual(model.info.max_tokens, 8192)
        asyncio.run(adapter.aclose())


if __name__ == "__main__":
    unittest.main()
