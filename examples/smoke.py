import asyncio
import logging
import sys

from aicore_llm import ChatMessage, ConfigurationError, SapAiCoreAdapter, Settings


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    async with SapAiCoreAdapter(Settings()) as adapter:
        print("Backend:", adapter.backend)
        print("Model:", adapter.get_model().id)

        for model in await adapter.list_models():
            print(f"  {model.provider:<20} {model.id:<40} streaming={model.streaming_supported}")

        try:
            async for event in adapter.create_message(
                "You are a terse assistant.",
                [ChatMessage(role="user", content="Say hi in five words.")],
            ):
                sys.stdout.write(event.text)
            print()
        except ConfigurationError as e:
            print("Expected error:", type(e).__name__, e)


if __name__ == "__main__":
    asyncio.run(main())
