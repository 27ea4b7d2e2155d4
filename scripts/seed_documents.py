#!/usr/bin/env python3
"""
Load the demo knowledge base into the configured vector store.

Writes the five demo records (tenants company_a, company_b, research_team),
embedding each record's question text.

The in-process Chroma store does not outlive this script, so point it at a
persistent backend first:
    CHROMA_URL=http://localhost:8000 python scripts/seed_documents.py
    VECTORSTORE_TYPE=pgvector python scripts/seed_documents.py

For in-process Chroma, start the API with SEED_ON_STARTUP=true instead.
"""

import logging

from delegator.config import settings
from delegator.services.embedder import OpenAIEmbedder
from delegator.services.seed import seed_vector_store
from delegator.services.vectorstore import get_vector_store


def main():
    logging.basicConfig(level=settings.log_level.upper())

    if settings.vectorstore_type == "pgvector":
        from delegator.db.engine import create_schema

        create_schema()

    written = seed_vector_store(get_vector_store(), OpenAIEmbedder())
    for tenant, count in sorted(written.items()):
        print(f"{tenant}: {count} records")


if __name__ == "__main__":
    main()
