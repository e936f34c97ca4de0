"""Tests for ``seaquel.joins``: foreign-key join resolution and row reshaping."""

from __future__ import annotations

import re

import pytest

from seaquel.builder import build_select
from seaquel.errors import AmbiguousJoinError, JoinResolutionError, StatementError
from seaquel.joins import Join, RowShape, flatten_row, resolve_join


class TestResolution:
    def test_single_fk_resolves_without_through(self, notifications, users):
        resolved = resolve_join(notifications, Join(users, "user"))
        assert resolved.constraint.name == "notifications_user_id_fk"
        assert resolved.table is users
        assert resolved.alias == "_user"

    def test_table_may_be_given_by_name(self, notifications, users):
        assert resolve_join(notifications, Join("users", "user")).table is users

    def test_mapping_spec_accepted(self, notifications, users):
        resolved = resolve_join(
            notifications, {"table": users, "as": "user", "filterOnly": True, "type": "left"}
        )
        assert resolved.join.filter_only is True
        assert resolved.keyword == "LEFT"

    def test_mapping_spec_needs_table_and_alias(self, notifications):
        with pytest.raises(StatementError, match="needs 'table' and 'as'"):
            resolve_join(notifications, {"table": "users"})

    def test_ambiguous_join_lists_candidates(self, messages, users):
        with pytest.raises(AmbiguousJoinError) as exc_info:
            resolve_join(messages, Join(users, "sender"))
        assert exc_info.value.candidates == ["messages_recipient_id_fk", "messages_sender_id_fk"]

    def test_through_picks_constraint(self, messages, users):
        resolved = resolve_join(messages, Join(users, "sender", through="sender_id"))
        assert resolved.constraint.name == "messages_sender_id_fk"
        resolved = resolve_join(messages, Join(users, "recipient", through=["recipient_id"]))
        assert resolved.constraint.name == "messages_recipient_id_fk"

    def test_through_unknown_column(self, messages, users):
        with pytest.raises(JoinResolutionError, match="through"):
            resolve_join(messages, Join(users, "x", through="author_id"))

    def test_no_foreign_key(self, users, notifications):
        with pytest.raises(JoinResolutionError, match="No foreign key"):
            resolve_join(users, Join(notifications, "n"))

    def test_unknown_join_type(self, notifications, users):
        resolved = resolve_join(notifications, Join(users, "user", type="sideways"))
        with pytest.raises(StatementError, match="Unsupported join type"):
            resolved.keyword

    def test_duplicate_alias_rejected(self, messages, users):
        with pytest.raises(StatementError, match="aliases must be unique"):
            build_select(
                messages,
                join=[
                    Join(users, "u", through="sender_id"),
                    Join(users, "u", through="recipient_id"),
                ],
            )


class TestJoinSql:
    def test_inner_join_with_where(self, notifications, users):
        stmt, shape = build_select(
            notifications,
            {"text": "hello"},
            join=[Join(users, "user", where={"first_name": "Darth"})],
        )
        assert stmt.sql == (
            'SELECT "notifications"."id" AS "notifications_id", '
            '"notifications"."text" AS "notifications_text", '
            '"notifications"."user_id" AS "notifications_user_id", '
            '"_user"."id" AS "_user_id", "_user"."first_name" AS "_user_first_name", '
            '"_user"."last_name" AS "_user_last_name", "_user"."email" AS "_user_email", '
            '"_user"."banned" AS "_user_banned", "_user"."password" AS "_user_password", '
            '"_user"."invitation_code" AS "_user_invitation_code", "_user"."likes" AS "_user_likes" '
            'FROM "public"."notifications" '
            'INNER JOIN "public"."users" "_user" '
            'ON "notifications"."user_id" = "_user"."id" AND "_user"."first_name" = $1 '
            'WHERE "notifications"."text" = $2'
        )
        assert stmt.params == ["Darth", "hello"]
        assert set(shape.prefixes) == {"notifications", "user"}

    def test_left_join_keyword(self, notifications, users):
        stmt, _ = build_select(notifications, join=[Join(users, "user", type="left")])
        assert 'LEFT JOIN "public"."users" "_user"' in stmt.sql

    def test_filter_only_join_selects_nothing(self, notifications, users):
        stmt, shape = build_select(
            notifications,
            join=[Join(users, "user", where={"banned": True}, filter_only=True)],
        )
        assert '"_user"."id" AS' not in stmt.sql
        assert 'INNER JOIN "public"."users" "_user"' in stmt.sql
        assert list(shape.prefixes) == ["notifications"]

    def test_alias_longer_than_identifier_limit_rejected(self, notifications, users):
        long_alias = "a" * 55
        with pytest.raises(StatementError, match="exceeds 63 bytes"):
            build_select(notifications, join=[Join(users, long_alias)])

    def test_alias_at_identifier_limit_accepted(self, notifications, users):
        # "_" + alias + "_" + "invitation_code" is exactly 63 bytes
        alias = "a" * (63 - 2 - len("invitation_code"))
        stmt, _ = build_select(notifications, join=[Join(users, alias)])
        assert f'AS "_{alias}_invitation_code"' in stmt.sql

    def test_placeholders_follow_parameter_positions(self, messages, users):
        stmt, _ = build_select(
            messages,
            {"body ILIKE": "%hi%", "id >": 3},
            join=[
                Join(users, "sender", through="sender_id", where={"banned": False}),
                Join(users, "recipient", through="recipient_id", where={"likes >=": 5, "password IS": None}),
            ],
            limit=5,
        )
        numbers = [int(n) for n in re.findall(r"\$(\d+)", stmt.sql)]
        assert numbers == [1, 2, 3, 4]
        assert stmt.params == [False, 5, "%hi%", 3]


class TestRowShape:
    def test_reshape_strips_prefixes(self, notifications, users):
        _, shape = build_select(notifications, join=[Join(users, "user")])
        row = {f"notifications_{c}": i for i, c in enumerate(notifications.column_names)}
        row.update({f"_user_{c}": c.upper() for c in users.column_names})
        nested = shape.reshape(row)
        assert nested["notifications"] == {"id": 0, "text": 1, "user_id": 2}
        assert nested["user"]["first_name"] == "FIRST_NAME"

    def test_left_join_without_match_yields_nones(self, notifications, users):
        _, shape = build_select(notifications, join=[Join(users, "user", type="left")])
        row = {"notifications_id": 1, "notifications_text": "t", "notifications_user_id": None}
        row.update({f"_user_{c}": None for c in users.column_names})
        nested = shape.reshape(row)
        assert set(nested["user"]) == set(users.column_names)
        assert all(value is None for value in nested["user"].values())

    def test_flatten_then_reshape_restores_fields(self, notifications, users):
        _, shape = build_select(notifications, join=[Join(users, "user")])
        nested = {
            "notifications": {"id": 1, "text": "hi", "user_id": 9},
            "user": {c: f"v-{c}" for c in users.column_names},
        }
        assert shape.reshape(flatten_row(nested, shape)) == nested

    def test_prefixes_do_not_collide_with_underscored_columns(self):
        shape = RowShape(
            prefixes={"orders": "orders_", "user": "_user_"},
            columns={"orders": ("user_id",), "user": ("id",)},
        )
        nested = shape.reshape({"orders_user_id": 3, "_user_id": 3})
        assert nested == {"orders": {"user_id": 3}, "user": {"id": 3}}


class TestSelectAllWithJoins:
    @pytest.mark.asyncio
    async def test_rows_are_nested(self, client, notifications, users):
        row = {f"notifications_{c}": c for c in notifications.column_names}
        row.update({f"_user_{c}": c for c in users.column_names})
        client.queue([row])
        rows = await notifications.select_all(join=[{"table": users, "as": "user"}])
        assert rows[0]["notifications"]["text"] == "text"
        assert rows[0]["user"]["email"] == "email"
