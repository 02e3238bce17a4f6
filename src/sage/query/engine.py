"""Query engine — retrieve, answer, grade, and enrich only when the answer falls short."""

from __future__ import annotations

import logging

from sage.config import Settings
from sage.models import (
    ExternalSnippet,
    Feedback,
    FeedbackRequest,
    Grade,
    QueryRequest,
    QueryRun,
    RetrievedChunk,
)
from sage.query.advisor import suggest_enrichment
from sage.query.answer import GeneratedAnswer, generate_answer
from sage.query.citations import validate_citations
from sage.query.external import ExternalEnricher
from sage.query.grader import assess_completeness
from sage.query.retriever import retrieve_top_k
from sage.query.topics import topic_from_question, topics_from_missing_info
from sage.stores.docstore import DocStore
from sage.stores.vectorstore import VectorStore

log = logging.getLogger(__name__)

CANNOT_ANSWER = (
    "I cannot answer this question because no relevant information was found in "
    "the uploaded documents, and no external sources could provide the missing information."
)
NO_PASSAGES_MESSAGE = "No relevant documents or passages were found for this question."
UPLOAD_SUGGESTION = "Upload documents that directly cover this topic, then try again."
EXTERNAL_ONLY_NOTICE = "No uploaded documents contained relevant information."


class QueryEngine:
    """Answers questions against the indexed corpus.

    Every answered question is persisted as one immutable ``QueryRun``; the
    run is written last, so a query that raises leaves nothing behind.
    """

    def __init__(
        self,
        docstore: DocStore,
        vectorstore: VectorStore,
        settings: Settings,
        *,
        enricher: ExternalEnricher | None = None,
    ):
        self.docstore = docstore
        self.vectorstore = vectorstore
        self.settings = settings
        self.enricher = enricher or ExternalEnricher(settings.enrich)

    async def _generate(
        self,
        question: str,
        chunks: list[RetrievedChunk],
        external: list[ExternalSnippet],
    ) -> GeneratedAnswer:
        return await generate_answer(
            question,
            chunks,
            external,
            prompts=self.settings.prompts,
            profile=self.settings.llm,
        )

    async def _grade(
        self,
        question: str,
        answer: str,
        chunks: list[RetrievedChunk],
    ) -> Grade:
        return await assess_completeness(
            question,
            answer,
            chunks,
            query=self.settings.query,
            prompts=self.settings.prompts,
            profile=self.settings.llm,
        )

    def _save(self, run: QueryRun) -> QueryRun:
        self.docstore.insert_query_run(run)
        log.info(
            "Query %s answered (confidence %.2f, external=%s, %d citations)",
            run.query_id, run.confidence, run.used_external, len(run.citations),
        )
        return run

    async def answer(self, request: QueryRequest) -> QueryRun:
        qcfg = self.settings.query
        question = request.question
        doc_ids = [str(d) for d in request.document_ids] if request.document_ids else None

        chunks = await retrieve_top_k(
            question,
            self.vectorstore,
            self.docstore,
            top_k=request.top_k or qcfg.top_k,
            document_ids=doc_ids,
            profile=self.settings.llm,
        )

        if not chunks:
            return await self._answer_without_documents(question)

        first = await self._generate(question, chunks, [])
        grade = await self._grade(question, first.answer_text, chunks)
        suggestions = suggest_enrichment(grade.missing_info)

        final, used_external = first, False
        if grade.missing_info or grade.confidence < qcfg.enrich_threshold:
            topics = topics_from_missing_info(grade.missing_info, question, limit=qcfg.max_topics)
            log.info("Answer needs enrichment (confidence %.2f); topics: %s", grade.confidence, topics)
            external = await self.enricher.auto_enrich(topics)
            if external:
                used_external = True
                final = await self._generate(question, chunks, external)
                grade = await self._grade(question, final.answer_text, chunks)

        return self._save(
            QueryRun(
                question=question,
                answer=final.answer_text,
                confidence=grade.confidence,
                missing_info=grade.missing_info,
                enrichment_suggestions=suggestions,
                used_external=used_external,
                citations=validate_citations(final.citations, max_chars=qcfg.excerpt_max_chars),
            )
        )

    async def _answer_without_documents(self, question: str) -> QueryRun:
        qcfg = self.settings.query
        topic = topic_from_question(question)
        external = await self.enricher.auto_enrich([topic])

        if not external:
            return self._save(
                QueryRun(
                    question=question,
                    answer=CANNOT_ANSWER,
                    confidence=qcfg.no_answer_confidence,
                    missing_info=[NO_PASSAGES_MESSAGE],
                    enrichment_suggestions=[UPLOAD_SUGGESTION],
                )
            )

        # With no document evidence the grade falls to its floor.
        generated = await self._generate(question, [], external)
        grade = await self._grade(question, generated.answer_text, [])
        return self._save(
            QueryRun(
                question=question,
                answer=generated.answer_text,
                confidence=min(grade.confidence, qcfg.external_confidence_cap),
                missing_info=[EXTERNAL_ONLY_NOTICE, *grade.missing_info],
                enrichment_suggestions=suggest_enrichment(grade.missing_info),
                used_external=True,
                citations=validate_citations(generated.citations, max_chars=qcfg.excerpt_max_chars),
            )
        )


def submit_feedback(docstore: DocStore, request: FeedbackRequest) -> Feedback:
    """Record feedback on an answered query.

    Raises:
        QueryRunNotFoundError: If the query run does not exist.
    """
    feedback = Feedback(
        query_id=str(request.query_id),
        rating=request.rating,
        is_helpful=request.is_helpful,
        comment=request.comment,
    )
    docstore.insert_feedback(feedback)
    return feedback
