from .views import (
    cast_vote,
    chat,
    close_debate,
    debate_status,
    get_debate,
    get_debate_history,
    get_leaderboard,
    get_today_debate,
    open_debate,
    preview_close_debate,
    retract_vote,
    submit_entry,
)


def setup_routes(app):
    app.router.add_get("/api/debates/today", get_today_debate)
    app.router.add_get("/api/debates/history", get_debate_history)
    app.router.add_get(r"/api/debates/{debate_id:\d+}", get_debate)
    app.router.add_get("/api/leaderboard", get_leaderboard)
    app.router.add_post("/api/entries", submit_entry)
    app.router.add_post("/api/votes", cast_vote)
    app.router.add_delete(r"/api/votes/{entry_id:\d+}", retract_vote)
    app.router.add_post("/api/chat", chat)
    app.router.add_post("/api/cron/close-debate", close_debate)
    app.router.add_get("/api/cron/close-debate", preview_close_debate)
    app.router.add_post("/api/cron/new-debate", open_debate)
    app.router.add_get("/api/cron/new-debate", debate_status)
