"""
Basic library example: index one file, then ask about it.

This script:
    1. Registers a stored file as a library document
    2. Indexes it (extract → chunk → embed → Qdrant), printing progress
    3. Asks a question and a follow-up chat turn, printing answers and sources

Needs a running Qdrant (QDRANT_URL, default http://localhost:6333), the
embedding and cross-encoder weights in the local cache (or
CROSS_ENCODER_ALLOW_REMOTE=true), and an OpenAI key in LLM_API_KEY.

Run:
    python examples/basic_library.py data/handbook.pdf
"""

import asyncio
import sys
from pathlib import Path

from rag_library import LibraryConfig, LibraryService, LLMConfig, configure_logging


async def main(path: Path):
    config = LibraryConfig(llm=LLMConfig(provider="openai", model_name="gpt-4o-mini"))
    service = LibraryService(config)
    await service.init()

    try:
        document = await service.register_upload(path.name, path.stat().st_size, str(path.resolve()))

        # --- Option 1: background run, poll progress like a UI would ---
        await service.start_indexing(document.id)
        while True:
            current = await service.get_document(document.id)
            stage = current.indexing_stage.value if current.indexing_stage else "-"
            print(f"  {current.status.value:<9} {stage:<10} {current.indexing_progress:>3}%")
            if current.status.value != "indexing":
                break
            await asyncio.sleep(0.5)

        if current.status.value != "indexed":
            print("Indexing failed; the document was reset so it can be retried.")
            return

        # --- Option 2: single question ---
        response = await service.ask("How many vacation days do employees get?")
        print(f"\nA: {response.answer.text if response.answer else response.answer_error}")
        for chunk in response.results:
            print(f"   [{chunk.score:.2f}] {chunk.document_name} #{chunk.chunk_index}")

        # --- Option 3: chat turn with history ---
        response = await service.chat([
            {"role": "user", "content": "How many vacation days do employees get?"},
            {"role": "assistant", "content": response.answer.text if response.answer else ""},
            {"role": "user", "content": "And who handles refunds?"},
        ])
        print(f"\nChat: {response.answer.text if response.answer else response.answer_error}")
    finally:
        await service.close()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(main(Path(sys.argv[1] if len(sys.argv) > 1 else "data/handbook.pdf")))
