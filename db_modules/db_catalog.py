import logging

from models import Competition, CompetitionEvent, CompetitionGroup


logger = logging.getLogger(__name__)


class CatalogDbMixin:
    """赛事目录（赛事/项目/分组）只读查询 mixin。

    目录数据由赛事管理模块维护，这里只在报名事务内读取。
    """

    def get_competition_with_conn(self, conn, competition_id):
        cursor = conn.cursor(dictionary=True)
        cursor.execute(
            """
            SELECT id, name, location, start_at, end_at,
                   signup_start_at, signup_end_at, created_by, created_at
            FROM competitions
            WHERE id = %s
            """,
            (competition_id,),
        )
        row = cursor.fetchone()
        cursor.close()
        return Competition.from_row(row) if row else None

    def get_competition_events_with_conn(self, conn, competition_id, event_ids=None):
        """获取赛事下的项目；传入 event_ids 时只返回其中属于该赛事的项目"""
        if event_ids is not None and not event_ids:
            return []
        cursor = conn.cursor(dictionary=True)
        sql = (
            "SELECT id, competition_id, name, category, unit_type "
            "FROM competition_events WHERE competition_id = %s"
        )
        params = [competition_id]
        if event_ids is not None:
            placeholders = ",".join(["%s"] * len(event_ids))
            sql += f" AND id IN ({placeholders})"
            params.extend(event_ids)
        sql += " ORDER BY created_at, id"
        cursor.execute(sql, tuple(params))
        rows = cursor.fetchall()
        cursor.close()
        return [CompetitionEvent.from_row(row) for row in rows]

    def get_competition_groups_with_conn(self, conn, competition_id, group_ids=None):
        """获取赛事下的分组；传入 group_ids 时只返回其中属于该赛事的分组"""
        if group_ids is not None and not group_ids:
            return []
        cursor = conn.cursor(dictionary=True)
        sql = (
            "SELECT id, competition_id, name, gender, age_bracket, identity_type, "
            "max_participants, team_size FROM competition_groups WHERE competition_id = %s"
        )
        params = [competition_id]
        if group_ids is not None:
            placeholders = ",".join(["%s"] * len(group_ids))
            sql += f" AND id IN ({placeholders})"
            params.extend(group_ids)
        sql += " ORDER BY created_at, id"
        cursor.execute(sql, tuple(params))
        rows = cursor.fetchall()
        cursor.close()
        return [CompetitionGroup.from_row(row) for row in rows]

