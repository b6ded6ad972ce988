"""Report generation endpoints: blocking JSON and a server-sent-event stream."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from smile_advisor.models import IntakeData, PipelineResult, ProgressEvent
from smile_advisor.pipeline.orchestrator import ReportPipeline

log = logging.getLogger(__name__)

router = APIRouter(tags=["reports"])


def _pipeline(request: Request) -> ReportPipeline:
    return request.app.state.pipeline


def _sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


@router.post("/reports", response_model=PipelineResult)
async def generate_report(intake: IntakeData, request: Request) -> PipelineResult:
    """Run the full pipeline. BLOCK outcomes still return 200 with the audit record."""
    return await _pipeline(request).run(intake)


async def _event_stream(pipeline: ReportPipeline, intake: IntakeData) -> AsyncIterator[str]:
    queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
    cancel = asyncio.Event()

    async def _run() -> PipelineResult:
        try:
            return await pipeline.run(intake, on_progress=queue.put_nowait, cancel_event=cancel)
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(_run())
    try:
        while True:
            event = await queue.get()
            if event is None:
                break
            yield _sse("progress", event.model_dump_json())
        result = await task
        yield _sse("result", result.model_dump_json())
    finally:
        if not task.done():
            log.info("Stream for session %s closed early; cancelling run", intake.session_id)
            cancel.set()
            await task


@router.post("/reports/stream")
async def stream_report(intake: IntakeData, request: Request) -> StreamingResponse:
    """Run the pipeline and stream ``progress`` events followed by one ``result`` event."""
    return StreamingResponse(
        _event_stream(_pipeline(request), intake),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
