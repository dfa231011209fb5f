"""Script to ingest a folder of text documents into the vector index."""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from grounded_qa.core.dependencies import services
from grounded_qa.models.document import DocumentIngestRequest, SourceType

SUPPORTED_SUFFIXES = {".txt", ".md"}


async def ingest_folder(folder: Path, owner_id: str = None) -> None:
    """Ingest every .txt and .md file under folder as an uploaded document."""
    paths = sorted(p for p in folder.rglob("*") if p.suffix.lower() in SUPPORTED_SUFFIXES)
    if not paths:
        print(f"No .txt or .md files found in {folder}")
        return

    requests = [
        DocumentIngestRequest(
            document_id=str(path.relative_to(folder)),
            text=path.read_text(encoding="utf-8", errors="replace"),
            source_type=SourceType.UPLOAD.value,
            title=path.stem,
            owner_id=owner_id,
            metadata={"path": str(path)},
        )
        for path in paths
    ]

    await services.vector_db.connect()
    try:
        results = await services.document_processor.process_documents(requests)
    finally:
        await services.vector_db.disconnect()

    for result in results:
        if result.error:
            print(f"FAILED  {result.document_id} ({result.stage}): {result.error}")
        else:
            print(f"{result.status.upper():<8}{result.document_id}: {result.chunk_count} chunks")

    failed = sum(1 for r in results if r.error)
    print(f"\nIngested {len(results) - failed}/{len(results)} documents")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/ingest_folder.py <folder> [owner_id]")
        sys.exit(1)
    asyncio.run(ingest_folder(Path(sys.argv[1]), sys.argv[2] if len(sys.argv) > 2 else None))
