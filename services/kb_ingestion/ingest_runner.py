"""Ingestion runner entry point.

Ingests local files into the knowledge base and prints the resulting statistics.
With --persist-dir the documents and vectors are written to JSON snapshots that the
API server loads on start-up when pointed at the same directory.

Usage:
    python -m services.kb_ingestion.ingest_runner resume.md plan.txt --category resume-version
"""

import argparse
import asyncio
import os
import sys

from services.kb_ingestion.IngestionService import IngestionService
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.extract.TextExtractor import TextExtractor
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.exceptions.errors import EngineError
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.document import DocumentCategory, DocumentStatus
from shared.stores.DocumentStore import DocumentStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest local files into the knowledge base.")
    parser.add_argument("paths", nargs="+", help="Files to ingest.")
    parser.add_argument(
        "--category",
        required=True,
        choices=[category.value for category in DocumentCategory],
        help="Category assigned to every file.",
    )
    parser.add_argument("--owner", default=None, help="Owner id (defaults to KB_DEFAULT_OWNER_ID).")
    parser.add_argument("--persist-dir", default=None, help="Directory for the JSON snapshots.")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """Ingest the given files.

    Returns:
        int: Process exit code, 1 if any file ended in status error.
    """
    args = parse_args(argv)
    logger = setup_logging()

    overrides = {}
    if args.persist_dir:
        overrides = {"KB_PERSIST_DIR": args.persist_dir}
    config = HelperConfig(logger=logger, overrides=overrides)

    embed_client = EmbedClientManager(helper_config=config).get_client()
    rag_client = RAGClientManager(helper_config=config).get_client()
    document_store = DocumentStore(helper_config=config)
    service = IngestionService(
        helper_config=config,
        document_store=document_store,
        rag_client=rag_client,
        embed_client=embed_client,
        extractor=TextExtractor(helper_config=config),
    )

    try:
        # the embed client is required, there is no point in ingesting without it
        await embed_client.boot()
        if not await embed_client.do_healthcheck():
            logger.error("Embed client '%s' is not healthy. Aborting.", embed_client.get_engine_name())
            return 1
        await rag_client.boot()
        document_store.boot()
        await service.reconcile()

        async def ingest_file(path: str):
            with open(path, "rb") as f:
                raw_bytes = f.read()
            return await service.ingest_and_wait(
                filename=os.path.basename(path),
                raw_bytes=raw_bytes,
                category=args.category,
                owner_id=args.owner,
            )

        results = await asyncio.gather(*[ingest_file(path) for path in args.paths], return_exceptions=True)

        failed = 0
        for path, result in zip(args.paths, results):
            if isinstance(result, (EngineError, OSError)):
                logger.error("Could not ingest '%s': %s", path, result)
                failed += 1
            elif isinstance(result, BaseException):
                raise result
            elif result.status is DocumentStatus.ERROR:
                logger.error("Ingestion of '%s' failed: %s", path, result.failure_reason)
                failed += 1
            else:
                logger.info("Ingested '%s' as %s with %d chunk(s).", path, result.id, result.chunk_count, color="green")

        stats = await service.get_stats()
        print(stats.model_dump_json(indent=2))
        return 1 if failed else 0
    finally:
        await service.close()
        await rag_client.close()
        await embed_client.close()


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
