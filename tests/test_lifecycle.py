"""
Tests for the request lifecycle: submissions, reviews and appeals.
"""

import pytest

from gamehub.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    QuotaExceededError,
    ResourceExhaustedError,
    UnauthorizedError,
    ValidationError,
)
from gamehub.models import AdminAction, Game, GameMedia, GameRequest, GameTag, User
from gamehub.services import lifecycle, moderation
from gamehub.services.lifecycle import RequestStatus


def _submit(db, user, n=1, **overrides):
    payload = {"title": f"Game {n}", "game_url": f"https://submit.example.com/{n}"}
    payload.update(overrides)
    return lifecycle.submit_new_game_request(db, user, **payload)


class TestTransitions:
    """The status machine only allows pending -> approved | rejected."""

    def test_pending_can_move_to_both_terminal_states(self):
        assert lifecycle.can_transition("pending", RequestStatus.APPROVED)
        assert lifecycle.can_transition("pending", RequestStatus.REJECTED)

    def test_terminal_states_are_final(self):
        for current in ("approved", "rejected"):
            for target in (RequestStatus.APPROVED, RequestStatus.REJECTED):
                assert not lifecycle.can_transition(current, target)

    def test_unknown_status_cannot_move(self):
        assert not lifecycle.can_transition("archived", RequestStatus.APPROVED)

    def test_ensure_transition_raises_for_terminal_state(self):
        with pytest.raises(InvalidStateError):
            lifecycle.ensure_transition("approved", RequestStatus.REJECTED)

    def test_allowed_sources(self):
        assert lifecycle.allowed_sources(RequestStatus.APPROVED) == ["pending"]


class TestSubmitNewGame:
    def test_creates_pending_request(self, db, user):
        request = lifecycle.submit_new_game_request(
            db, user, title="  Pong ", game_url="http://pong.example", description="<b>Classic</b>"
        )
        assert request.status == "pending"
        assert request.request_type == "new_game"
        assert request.title == "Pong"
        assert request.description == "Classic"
        assert request.submitted_by == user.id
        assert request.game_id is None

    def test_requires_identity(self, db):
        with pytest.raises(UnauthorizedError):
            _submit(db, None)

    def test_inactive_user_is_forbidden(self, db, make_user):
        banned = make_user(is_active=False)
        with pytest.raises(ForbiddenError):
            _submit(db, banned)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": "   "},
            {"title": "x" * 101},
            {"game_url": ""},
            {"game_url": "ftp://files.example.com/game"},
            {"game_url": "not a url"},
        ],
    )
    def test_rejects_invalid_input(self, db, user, overrides):
        with pytest.raises(ValidationError):
            _submit(db, user, **overrides)
        assert db.query(GameRequest).count() == 0

    def test_title_at_limit_is_accepted(self, db, user):
        request = _submit(db, user, title="x" * 100)
        assert len(request.title) == 100

    def test_duplicate_pending_url_conflicts(self, db, user):
        _submit(db, user, game_url="https://dup.example.com")
        with pytest.raises(ConflictError):
            _submit(db, user, n=2, game_url="https://dup.example.com")

    def test_url_of_live_game_conflicts(self, db, user, make_game):
        make_game(user, game_url="https://live.example.com")
        with pytest.raises(ConflictError):
            _submit(db, user, game_url="https://live.example.com")

    def test_unknown_tag_is_rejected(self, db, user):
        with pytest.raises(ValidationError):
            _submit(db, user, tag_ids=["missing-tag"])

    def test_media_is_staged_with_request(self, db, user):
        request = _submit(
            db,
            user,
            media=[
                {"storage_key": "games/a/cover.png", "media_type": "image", "sort_order": 0},
                {"storage_key": "games/a/trailer.mp4", "media_type": "video", "sort_order": 1},
            ],
        )
        media = db.query(GameMedia).filter(GameMedia.game_request_id == request.id).all()
        assert len(media) == 2
        assert all(item.game_id is None for item in media)

    def test_invalid_media_type_is_rejected(self, db, user):
        with pytest.raises(ValidationError):
            _submit(db, user, media=[{"storage_key": "x.gif", "media_type": "audio"}])


class TestQuota:
    def test_fourth_pending_submission_fails_until_one_is_reviewed(self, db, user, admin):
        requests = [_submit(db, user, n=n) for n in range(1, 4)]

        with pytest.raises(ResourceExhaustedError) as excinfo:
            _submit(db, user, n=4)
        assert isinstance(excinfo.value, QuotaExceededError)
        assert excinfo.value.limit == 3

        lifecycle.reject_game_request(db, requests[0].id, admin)
        fourth = _submit(db, user, n=4)
        assert fourth.status == "pending"

    def test_quota_is_per_user(self, db, user, other_user):
        for n in range(1, 4):
            _submit(db, user, n=n)
        request = _submit(db, other_user, n=10)
        assert request.submitted_by == other_user.id

    def test_validation_runs_before_quota(self, db, user):
        for n in range(1, 4):
            _submit(db, user, n=n)
        with pytest.raises(ValidationError):
            _submit(db, user, n=4, title="")


class TestApproveNewGame:
    def test_pong_approval_creates_game_and_audit_row(self, db, user, admin):
        request = lifecycle.submit_new_game_request(
            db, user, title="Pong", game_url="http://pong.example"
        )

        approved = lifecycle.approve_game_request(db, request.id, admin)

        assert approved.status == "approved"
        assert approved.reviewed_by == admin.id
        assert approved.reviewed_at is not None
        game = db.query(Game).filter(Game.id == approved.game_id).one()
        assert game.title == "Pong"
        assert game.game_url == "http://pong.example"
        assert game.created_by == user.id
        assert (game.count_likes, game.count_dislikes, game.score) == (0, 0, 0)
        assert game.is_active is True

        actions = db.query(AdminAction).filter(AdminAction.game_request_id == request.id).all()
        assert len(actions) == 1
        assert actions[0].action == "approve"
        assert actions[0].admin_id == admin.id

    def test_media_and_tags_follow_the_game(self, db, user, admin, make_tag):
        puzzle = make_tag("Puzzle")
        request = _submit(
            db,
            user,
            tag_ids=[puzzle.id],
            media=[
                {"storage_key": "trailer.mp4", "media_type": "video", "sort_order": 0},
                {"storage_key": "cover.png", "media_type": "image", "sort_order": 1},
            ],
        )

        approved = lifecycle.approve_game_request(db, request.id, admin)

        game = db.query(Game).filter(Game.id == approved.game_id).one()
        media = db.query(GameMedia).filter(GameMedia.game_id == game.id).all()
        assert len(media) == 2
        cover = db.query(GameMedia).filter(GameMedia.id == game.cover_media_id).one()
        assert cover.storage_key == "cover.png"
        assert db.query(GameTag).filter(GameTag.game_id == game.id).count() == 1

    def test_non_admin_cannot_approve(self, db, user, other_user):
        request = _submit(db, user)
        with pytest.raises(ForbiddenError):
            lifecycle.approve_game_request(db, request.id, other_user)
        db.expire_all()
        assert db.query(GameRequest).filter(GameRequest.id == request.id).one().status == "pending"

    def test_missing_request_is_not_found(self, db, admin):
        with pytest.raises(NotFoundError):
            lifecycle.approve_game_request(db, "does-not-exist", admin)

    def test_second_approval_is_invalid_state(self, db, user, admin):
        request = _submit(db, user)
        lifecycle.approve_game_request(db, request.id, admin)

        with pytest.raises(InvalidStateError):
            lifecycle.approve_game_request(db, request.id, admin)
        with pytest.raises(InvalidStateError):
            lifecycle.reject_game_request(db, request.id, admin)
        assert db.query(Game).count() == 1
        assert db.query(AdminAction).count() == 1

    def test_url_taken_since_submission_conflicts_and_rolls_back(self, db, user, other_user, admin, make_game):
        request = _submit(db, user, game_url="https://race.example.com")
        make_game(other_user, game_url="https://race.example.com")

        with pytest.raises(ConflictError):
            lifecycle.approve_game_request(db, request.id, admin)

        db.expire_all()
        assert db.query(GameRequest).filter(GameRequest.id == request.id).one().status == "pending"
        assert db.query(AdminAction).count() == 0


class TestReject:
    def test_reject_records_response_and_creates_no_game(self, db, user, admin):
        request = _submit(db, user)

        rejected = lifecycle.reject_game_request(db, request.id, admin, admin_response="Broken link")

        assert rejected.status == "rejected"
        assert rejected.admin_response == "Broken link"
        assert db.query(Game).count() == 0
        action = db.query(AdminAction).one()
        assert action.action == "reject"
        assert action.note == "Broken link"


class TestModification:
    def test_owner_modification_is_applied_on_approval(self, db, user, admin, game):
        request = lifecycle.submit_game_modification(
            db,
            user,
            game.id,
            title="Starter Game Deluxe",
            game_url="https://games.example.com/deluxe",
            description="Now with more levels",
        )
        assert request.request_type == "game_modification"
        assert request.game_id == game.id

        lifecycle.approve_game_request(db, request.id, admin)

        db.expire_all()
        updated = db.query(Game).filter(Game.id == game.id).one()
        assert updated.title == "Starter Game Deluxe"
        assert updated.game_url == "https://games.example.com/deluxe"
        assert updated.description == "Now with more levels"

    def test_only_owner_can_modify(self, db, other_user, game):
        with pytest.raises(ForbiddenError):
            lifecycle.submit_game_modification(
                db, other_user, game.id, title="Mine now", game_url="https://x.example.com"
            )

    def test_missing_game(self, db, user):
        with pytest.raises(NotFoundError):
            lifecycle.submit_game_modification(
                db, user, "nope", title="Title", game_url="https://x.example.com"
            )

    def test_duplicate_pending_modification_conflicts(self, db, user, game):
        kwargs = {"title": "New title", "game_url": game.game_url}
        lifecycle.submit_game_modification(db, user, game.id, **kwargs)
        with pytest.raises(ConflictError):
            lifecycle.submit_game_modification(db, user, game.id, **kwargs)

    def test_deactivated_game_needs_an_appeal(self, db, user, make_game):
        hidden = make_game(user, is_active=False)
        with pytest.raises(InvalidStateError):
            lifecycle.submit_game_modification(
                db, user, hidden.id, title="Fixed", game_url=hidden.game_url
            )


class TestGameAppeal:
    def test_appeal_restores_game_on_approval(self, db, user, admin, game):
        moderation.deactivate_game(db, game.id, admin, reason="Reported")

        request = lifecycle.submit_game_appeal(db, user, game.id, note="It was a false report")
        assert request.request_type == "game_appeal"
        assert request.submitter_note == "It was a false report"
        assert request.title == game.title

        lifecycle.approve_game_request(db, request.id, admin)

        db.expire_all()
        restored = db.query(Game).filter(Game.id == game.id).one()
        assert restored.is_active is True
        assert restored.deactivated_at is None
        assert restored.deactivation_reason is None

    def test_active_game_cannot_be_appealed(self, db, user, game):
        with pytest.raises(InvalidStateError):
            lifecycle.submit_game_appeal(db, user, game.id, note="Please")

    def test_appeal_requires_note(self, db, user, make_game):
        hidden = make_game(user, is_active=False)
        with pytest.raises(ValidationError):
            lifecycle.submit_game_appeal(db, user, hidden.id, note="  ")

    def test_only_owner_can_appeal(self, db, other_user, make_game, user):
        hidden = make_game(user, is_active=False)
        with pytest.raises(ForbiddenError):
            lifecycle.submit_game_appeal(db, other_user, hidden.id, note="Not mine")


class TestUserRequests:
    def test_unban_appeal_from_banned_user(self, db, user, admin):
        moderation.deactivate_user(db, user.id, admin, reason="Spam")
        db.refresh(user)

        request = lifecycle.submit_user_request(
            db, user, request_type="user_unban_appeal", appeal_text="I will behave"
        )
        assert request.status == "pending"

        lifecycle.approve_user_request(db, request.id, admin)

        db.expire_all()
        restored = db.query(User).filter(User.id == user.id).one()
        assert restored.is_active is True
        action = db.query(AdminAction).filter(AdminAction.user_request_id == request.id).one()
        assert action.action == "approve"

    def test_active_user_cannot_request_unban(self, db, user):
        with pytest.raises(InvalidStateError):
            lifecycle.submit_user_request(
                db, user, request_type="user_unban_appeal", appeal_text="Unban me"
            )

    def test_banned_user_cannot_report_games(self, db, make_user, game):
        banned = make_user(is_active=False)
        with pytest.raises(ForbiddenError):
            lifecycle.submit_user_request(
                db,
                banned,
                request_type="game_report_appeal",
                appeal_text="Look",
                related_game_id=game.id,
            )

    def test_game_report_requires_existing_game(self, db, user):
        with pytest.raises(ValidationError):
            lifecycle.submit_user_request(db, user, request_type="game_report_appeal", appeal_text="Look")
        with pytest.raises(NotFoundError):
            lifecycle.submit_user_request(
                db,
                user,
                request_type="game_report_appeal",
                appeal_text="Look",
                related_game_id="missing",
            )

    def test_unban_appeal_cannot_reference_game(self, db, make_user, game):
        banned = make_user(is_active=False)
        with pytest.raises(ValidationError):
            lifecycle.submit_user_request(
                db,
                banned,
                request_type="user_unban_appeal",
                appeal_text="Unban me",
                related_game_id=game.id,
            )

    def test_unknown_type_and_empty_text_are_rejected(self, db, user):
        with pytest.raises(ValidationError):
            lifecycle.submit_user_request(db, user, request_type="refund", appeal_text="Money")
        with pytest.raises(ValidationError):
            lifecycle.submit_user_request(
                db, user, request_type="game_report_appeal", appeal_text="", related_game_id="x"
            )

    def test_duplicate_pending_report_conflicts(self, db, user, game):
        kwargs = {"request_type": "game_report_appeal", "appeal_text": "Restore it", "related_game_id": game.id}
        lifecycle.submit_user_request(db, user, **kwargs)
        with pytest.raises(ConflictError):
            lifecycle.submit_user_request(db, user, **kwargs)

    def test_approved_game_report_reactivates_game(self, db, user, other_user, admin, game):
        moderation.deactivate_game(db, game.id, admin, reason="Mistake")
        request = lifecycle.submit_user_request(
            db,
            other_user,
            request_type="game_report_appeal",
            appeal_text="This game was removed by mistake",
            related_game_id=game.id,
        )

        lifecycle.approve_user_request(db, request.id, admin)

        db.expire_all()
        assert db.query(Game).filter(Game.id == game.id).one().is_active is True

    def test_rejected_user_request_is_final(self, db, user, admin, game):
        request = lifecycle.submit_user_request(
            db, user, request_type="game_report_appeal", appeal_text="Look", related_game_id=game.id
        )
        lifecycle.reject_user_request(db, request.id, admin, admin_response="No")
        with pytest.raises(InvalidStateError):
            lifecycle.approve_user_request(db, request.id, admin)


class TestQueues:
    def test_pending_queue_is_newest_first_and_excludes_reviewed(self, db, user, other_user, admin):
        first = _submit(db, user, n=1)
        second = _submit(db, other_user, n=2)
        third = _submit(db, user, n=3)
        lifecycle.reject_game_request(db, second.id, admin)

        total, rows = lifecycle.list_pending_game_requests(db)

        assert total == 2
        assert {row.id for row in rows} == {first.id, third.id}

    def test_my_requests_lists_all_statuses(self, db, user, admin):
        first = _submit(db, user, n=1)
        _submit(db, user, n=2)
        lifecycle.approve_game_request(db, first.id, admin)

        rows = lifecycle.list_game_requests_for_user(db, user.id)

        assert len(rows) == 2
        assert {row.status for row in rows} == {"approved", "pending"}

    def test_pending_user_requests(self, db, user, game):
        lifecycle.submit_user_request(
            db, user, request_type="game_report_appeal", appeal_text="Look", related_game_id=game.id
        )
        total, rows = lifecycle.list_pending_user_requests(db)
        assert total == 1
        assert rows[0].submitted_by == user.id
        assert len(lifecycle.list_user_requests_for_user(db, user.id)) == 1
