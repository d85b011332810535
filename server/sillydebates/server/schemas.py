from marshmallow import Schema, fields, validate


class ErrorResponse(Schema):
    error = fields.String(required=True)
    code = fields.String()


class EntryUser(Schema):
    id = fields.Integer(required=True)
    name = fields.String(allow_none=True)


class EntryResponse(Schema):
    id = fields.Integer(required=True)
    content = fields.String(required=True)
    vote_count = fields.Integer(required=True)
    created_at = fields.DateTime()
    user = fields.Nested(EntryUser)
    has_voted = fields.Boolean()
    is_own_entry = fields.Boolean()


class SubmitEntryRequest(Schema):
    content = fields.String(required=True)
    debate_id = fields.Integer(allow_none=True, load_default=None)


class CastVoteRequest(Schema):
    entry_id = fields.Integer(required=True)


class VoteResponse(Schema):
    vote_id = fields.Integer(allow_none=True)
    entry_id = fields.Integer(required=True)
    vote_count = fields.Integer(required=True)
    has_voted = fields.Boolean(required=True)
    previous_entry_id = fields.Integer(allow_none=True)


class TodayDebateResponse(Schema):
    id = fields.Integer(required=True)
    topic = fields.String(required=True)
    day_number = fields.Integer(required=True)
    status = fields.String(required=True)
    created_at = fields.DateTime()
    entries = fields.List(fields.Nested(EntryResponse), required=True)
    user_has_submitted = fields.Boolean(required=True)
    user_entry_id = fields.Integer(allow_none=True)


class WinnerResponse(Schema):
    id = fields.Integer()
    entry = fields.String()
    user_name = fields.String()
    votes = fields.Integer()


class DebateSummaryResponse(Schema):
    id = fields.Integer(required=True)
    day_number = fields.Integer(required=True)
    topic = fields.String(required=True)
    status = fields.String(required=True)
    created_at = fields.DateTime()
    closed_at = fields.DateTime(allow_none=True)
    total_entries = fields.Integer()
    total_votes = fields.Integer()
    winner = fields.Nested(WinnerResponse, allow_none=True)
    commentary = fields.String(allow_none=True)
    top_entries = fields.List(fields.Nested(EntryResponse))


class LeaderResponse(Schema):
    id = fields.Integer()
    name = fields.String()
    wins = fields.Integer()


class HistoryStats(Schema):
    total_debates = fields.Integer()
    total_entries = fields.Integer()
    total_votes = fields.Integer()
    top_winners = fields.List(fields.Nested(LeaderResponse))


class HistoryResponse(Schema):
    debates = fields.List(fields.Nested(DebateSummaryResponse), required=True)
    stats = fields.Nested(HistoryStats, required=True)


class LeaderboardResponse(Schema):
    leaders = fields.List(fields.Nested(LeaderResponse), required=True)


class ChatMessage(Schema):
    role = fields.String(required=True, validate=validate.OneOf(["user", "assistant"]))
    content = fields.String(required=True)


class ChatRequest(Schema):
    message = fields.String(required=True, validate=validate.Length(min=1, max=1000))
    history = fields.List(fields.Nested(ChatMessage), load_default=list)


class ChatResponse(Schema):
    message = fields.String(required=True)


class OpenedDebateResponse(Schema):
    id = fields.Integer(required=True)
    topic = fields.String(required=True)
    day_number = fields.Integer(required=True)
    created_at = fields.DateTime()


class WinnerDetailResponse(Schema):
    id = fields.Integer(attribute="entry_id")
    entry = fields.String(attribute="content")
    user_id = fields.Integer()
    user_name = fields.String()
    votes = fields.Integer()


class ClosedDebateResponse(Schema):
    id = fields.Integer(attribute="debate_id", required=True)
    topic = fields.String(required=True)
    day_number = fields.Integer(required=True)
    closed_at = fields.DateTime()
    total_entries = fields.Integer(required=True)
    total_votes = fields.Integer(required=True)
    winner = fields.Nested(WinnerDetailResponse, allow_none=True)
    commentary = fields.String(allow_none=True)
    archived = fields.Boolean()
    top_entries = fields.List(fields.Nested(EntryResponse))


class ClosePreviewDebate(Schema):
    id = fields.Integer()
    topic = fields.String()
    day_number = fields.Integer()
    created_at = fields.DateTime()
    total_entries = fields.Integer()
    total_votes = fields.Integer()
    top_entries = fields.List(fields.Nested(EntryResponse))
    potential_winner = fields.Nested(WinnerResponse, allow_none=True)


class ClosePreviewResponse(Schema):
    has_active_debate = fields.Boolean(required=True)
    message = fields.String()
    debate = fields.Nested(ClosePreviewDebate)


class ActiveDebateStatus(Schema):
    id = fields.Integer()
    topic = fields.String()
    day_number = fields.Integer()
    created_at = fields.DateTime()
    entries_count = fields.Integer()


class DebateStatusResponse(Schema):
    has_active_debate = fields.Boolean(required=True)
    active_debate = fields.Nested(ActiveDebateStatus, allow_none=True)
    total_debates = fields.Integer()
    next_day_number = fields.Integer()
