"""Query pipeline: similarity search, score filtering and answer generation.

Handles:
- Query validation
- Vector index search by query text
- Score-threshold filtering
- Answer generation from the surviving chunks
"""
from typing import List, Optional

import structlog

from docsearch import config
from docsearch.errors import InvalidQuery
from docsearch.llm_client import GenerationClient
from docsearch.models import QueryResult, SearchHit
from docsearch.vector_client import PineconeIndexClient

logger = structlog.get_logger()

SEARCH_FIELDS = ["persona", "chunk_text", "document"]


def filter_hits(hits: List[SearchHit], min_score: float) -> List[SearchHit]:
    """Keep hits scoring at least ``min_score``, in their original order."""
    return [hit for hit in hits if hit.score >= min_score]


class QueryPipeline:
    """Answers questions from the indexed documents."""

    def __init__(
        self,
        index: PineconeIndexClient,
        generator: GenerationClient,
        top_k: int = None,
        max_query_length: int = None,
    ):
        """Initialize the query pipeline.

        Args:
            index: Vector index client
            generator: Answer generation client
            top_k: Candidate hits requested per query (default from config)
            max_query_length: Longest accepted query in characters
        """
        self.index = index
        self.generator = generator
        self.top_k = top_k or config.SEARCH_TOP_K
        self.max_query_length = max_query_length or config.MAX_QUERY_LENGTH

    async def search(self, query: str) -> List[SearchHit]:
        """Candidate hits for a query, in index order (best first)."""
        raw_hits = await self.index.search(query, top_k=self.top_k, fields=SEARCH_FIELDS)
        return [
            SearchHit(
                id=hit["id"],
                score=float(hit["score"]),
                chunk_text=hit["fields"].get("chunk_text", ""),
                document=hit["fields"].get("document", ""),
                persona=hit["fields"].get("persona"),
            )
            for hit in raw_hits
        ]

    async def answer(self, query: str, min_score: Optional[float] = None) -> QueryResult:
        """Answer ``query`` using hits that reach ``min_score``.

        The threshold is compared as given, without clamping. When no hit
        qualifies the generator is still called, with empty context.

        Raises:
            InvalidQuery: If the query is empty or too long
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidQuery("Query must not be empty")

        query = query.strip()
        if len(query) > self.max_query_length:
            raise InvalidQuery(
                f"Query too long (max {self.max_query_length} characters)",
                {"max_length": self.max_query_length},
            )

        if min_score is None:
            min_score = config.DEFAULT_MIN_SCORE

        logger.info("query_started", query_length=len(query), min_score=min_score)

        candidates = await self.search(query)
        sources = filter_hits(candidates, min_score)

        if not sources:
            logger.info(
                "no_hits_above_threshold",
                candidates=len(candidates),
                min_score=min_score,
                top_score=candidates[0].score if candidates else None,
            )

        answer = await self.generator.generate(query, [hit.chunk_text for hit in sources])

        logger.info(
            "query_completed",
            candidates=len(candidates),
            sources=len(sources),
            answer_length=len(answer),
        )

        return QueryResult(answer=answer, sources=sources)
