from aiohttp import web
import logging

from aiohttp_apispec import docs, request_schema

from sillydebates import knowledge_base
from sillydebates.errors import NotFound
from .schemas import (
    CastVoteRequest,
    ChatRequest,
    ChatResponse,
    ClosedDebateResponse,
    ClosePreviewResponse,
    DebateStatusResponse,
    DebateSummaryResponse,
    EntryResponse,
    ErrorResponse,
    HistoryResponse,
    LeaderboardResponse,
    OpenedDebateResponse,
    SubmitEntryRequest,
    TodayDebateResponse,
    VoteResponse,
)

logger = logging.getLogger(__name__)


@docs(
    tags=["debates"],
    summary="Today's debate",
    description="Returns the active debate with its approved entries ranked by votes. "
    "When the caller is signed in, each entry says whether they voted for it or wrote it.",
    responses={
        200: {"schema": TodayDebateResponse, "description": "Success response"},
        404: {"schema": ErrorResponse, "description": "No active debate"},
    },
)
async def get_today_debate(request):
    async with request.app["session_factory"]() as session:
        debate = await knowledge_base.get_today_debate(session, request["user_id"])
    if debate is None:
        raise NotFound("No active debate found")
    return web.json_response(TodayDebateResponse().dump(debate))


@docs(
    tags=["debates"],
    summary="Debate history",
    description="Every debate, newest first, with totals and winners, plus overall statistics.",
    responses={200: {"schema": HistoryResponse, "description": "Success response"}},
)
async def get_debate_history(request):
    async with request.app["session_factory"]() as session:
        history = await knowledge_base.get_debate_history(session)
    return web.json_response(HistoryResponse().dump(history))


@docs(
    tags=["debates"],
    summary="Retrieves a debate by ID",
    responses={
        200: {"schema": DebateSummaryResponse, "description": "Success response"},
        404: {"schema": ErrorResponse, "description": "Debate not found"},
    },
)
async def get_debate(request):
    debate_id = int(request.match_info["debate_id"])
    async with request.app["session_factory"]() as session:
        debate = await knowledge_base.get_debate_detail(session, debate_id)
    if debate is None:
        raise NotFound("Debate not found")
    return web.json_response(DebateSummaryResponse().dump(debate))


@docs(
    tags=["debates"],
    summary="Leaderboard",
    description="Users with at least one win, most wins first.",
    responses={200: {"schema": LeaderboardResponse, "description": "Success response"}},
)
async def get_leaderboard(request):
    async with request.app["session_factory"]() as session:
        leaders = await knowledge_base.get_leaderboard(session)
    return web.json_response(LeaderboardResponse().dump({"leaders": leaders}))


@docs(
    tags=["entries"],
    summary="Submit an entry",
    description="Submits an answer to the active debate (or the given debate, which must be active). "
    "Entries are moderated before they are stored.",
    responses={
        201: {"schema": EntryResponse, "description": "Entry created"},
        400: {"schema": ErrorResponse, "description": "Invalid content, rejected by moderation or debate closed"},
        404: {"schema": ErrorResponse, "description": "No active debate"},
        422: {"description": "Validation error"},
    },
)
@request_schema(SubmitEntryRequest)
async def submit_entry(request):
    data = request["data"]
    entry = await request.app["entries"].submit_entry(
        request["user_id"], data["content"], data.get("debate_id")
    )
    response_data = EntryResponse().dump(
        {
            "id": entry.id,
            "content": entry.content,
            "vote_count": entry.vote_count,
            "created_at": entry.created_at,
            "user": {"id": entry.user.id, "name": entry.user.name},
            "has_voted": False,
            "is_own_entry": True,
        }
    )
    return web.json_response(response_data, status=201)


@docs(
    tags=["votes"],
    summary="Cast a vote",
    description="One vote per user per debate: voting for another entry moves the vote "
    "and reports the previous entry.",
    responses={
        200: {"schema": VoteResponse, "description": "Vote switched"},
        201: {"schema": VoteResponse, "description": "Vote created"},
        400: {"schema": ErrorResponse, "description": "Debate no longer active"},
        404: {"schema": ErrorResponse, "description": "Entry not found"},
        409: {"schema": ErrorResponse, "description": "Already voted for this entry"},
        422: {"description": "Validation error"},
    },
)
@request_schema(CastVoteRequest)
async def cast_vote(request):
    result = await request.app["ledger"].cast_vote(
        request["user_id"], request["data"]["entry_id"]
    )
    return web.json_response(
        VoteResponse().dump(result), status=201 if result.created else 200
    )


@docs(
    tags=["votes"],
    summary="Remove a vote",
    responses={
        200: {"schema": VoteResponse, "description": "Vote removed"},
        400: {"schema": ErrorResponse, "description": "Debate no longer active"},
        404: {"schema": ErrorResponse, "description": "Entry or vote not found"},
    },
)
async def retract_vote(request):
    entry_id = int(request.match_info["entry_id"])
    result = await request.app["ledger"].retract_vote(request["user_id"], entry_id)
    return web.json_response(VoteResponse().dump(result))


@docs(
    tags=["chat"],
    summary="Ask about past debates",
    responses={
        200: {"schema": ChatResponse, "description": "Assistant answer"},
        502: {"schema": ErrorResponse, "description": "AI service unavailable"},
        422: {"description": "Validation error"},
    },
)
@request_schema(ChatRequest)
async def chat(request):
    data = request["data"]
    async with request.app["session_factory"]() as session:
        history = await knowledge_base.get_debate_history(session)
    answer = await request.app["ai"].chat(
        data["message"],
        knowledge_base.build_context_string(history),
        data["history"],
    )
    return web.json_response(ChatResponse().dump({"message": answer}))


@docs(
    tags=["cron"],
    summary="Close the active debate",
    description="Called by the scheduler at the end of each day. Selects the winner, "
    "credits the winning user, stores AI commentary when available and exports the "
    "result to the knowledge base.",
    responses={
        200: {"schema": ClosedDebateResponse, "description": "Debate closed"},
        401: {"description": "Unauthorized"},
        404: {"schema": ErrorResponse, "description": "No active debate to close"},
    },
)
async def close_debate(request):
    summary = await request.app["lifecycle"].close_active_debate()
    return web.json_response(
        {"success": True, "debate": ClosedDebateResponse().dump(summary)}
    )


@docs(
    tags=["cron"],
    summary="Preview closing the active debate",
    responses={200: {"schema": ClosePreviewResponse, "description": "Preview"}},
)
async def preview_close_debate(request):
    preview = await request.app["lifecycle"].preview_close()
    return web.json_response(ClosePreviewResponse().dump(preview))


@docs(
    tags=["cron"],
    summary="Open today's debate",
    description="Called by the scheduler at the start of each day. Generates a new topic "
    "that does not repeat earlier ones.",
    responses={
        200: {"schema": OpenedDebateResponse, "description": "Debate opened"},
        400: {"schema": ErrorResponse, "description": "Challenge has ended"},
        401: {"description": "Unauthorized"},
        409: {"schema": ErrorResponse, "description": "An active debate already exists"},
        502: {"schema": ErrorResponse, "description": "Topic generation failed"},
    },
)
async def open_debate(request):
    debate = await request.app["lifecycle"].open_new_debate()
    return web.json_response(
        {"success": True, "debate": OpenedDebateResponse().dump(debate)}
    )


@docs(
    tags=["cron"],
    summary="Debate scheduling status",
    responses={200: {"schema": DebateStatusResponse, "description": "Status"}},
)
async def debate_status(request):
    status = await request.app["lifecycle"].debate_status()
    return web.json_response(DebateStatusResponse().dump(status))
