import json
import logging

from models import Registration, EventSelection, RegistrationExtra


logger = logging.getLogger(__name__)


def _dump_extra(extra):
    if isinstance(extra, RegistrationExtra):
        extra = extra.to_json()
    return json.dumps(extra or {}, ensure_ascii=False)


def _dump_attachments(attachments):
    return json.dumps([a.to_dict() for a in (attachments or [])], ensure_ascii=False)


class RegistrationDbMixin:
    """报名记录及所选项目的数据库操作 mixin。

    只提供单行级别的读写，均在调用方传入的连接上执行、不提交；
    组合写入与事务边界由 registration_writer.RegistrationWriter 负责。
    """

    _REGISTRATION_SELECT = """
        SELECT
            r.id, r.competition_id, c.name AS competition_name,
            r.user_id, r.team_id, t.name AS team_name, t.members AS team_members,
            r.participant_name, r.participant_gender, r.participant_identity,
            r.contact, r.extra, r.attachments, r.status,
            r.created_at, r.updated_at
        FROM competition_registrations r
        JOIN competitions c ON r.competition_id = c.id
        LEFT JOIN teams t ON r.team_id = t.id
    """

    # 允许通过 update_registration_fields_with_conn 修改的列
    _UPDATABLE_COLUMNS = {
        'participant_gender',
        'participant_identity',
        'contact',
        'extra',
        'attachments',
        'status',
    }

    def get_team_registrations_with_conn(self, conn, competition_id, team_id):
        """读取 (赛事, 队伍) 下的全部报名记录（含已撤销），并加行锁"""
        cursor = conn.cursor(dictionary=True)
        cursor.execute(
            """
            SELECT id, competition_id, user_id, team_id, participant_name,
                   participant_gender, participant_identity, contact,
                   extra, attachments, status, created_at, updated_at
            FROM competition_registrations
            WHERE competition_id = %s AND team_id = %s
            ORDER BY id
            FOR UPDATE
            """,
            (competition_id, team_id),
        )
        rows = cursor.fetchall()
        cursor.close()
        return [Registration.from_row(row) for row in rows]

    def insert_registration_with_conn(self, conn, registration):
        cursor = conn.cursor()
        cursor.execute(
            """
            INSERT INTO competition_registrations (
                competition_id, user_id, team_id,
                participant_name, participant_gender, participant_identity,
                contact, extra, attachments, status,
                created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                registration.competition_id,
                registration.user_id,
                registration.team_id,
                registration.participant_name,
                registration.gender,
                registration.identity_type,
                registration.contact,
                _dump_extra(registration.extra),
                _dump_attachments(registration.attachments),
                registration.status.value,
                registration.created_at,
                registration.updated_at,
            ),
        )
        registration_id = cursor.lastrowid
        cursor.close()
        return registration_id

    def update_registration_fields_with_conn(self, conn, registration_id, fields):
        """按列名更新报名记录，未在白名单中的键被忽略；返回是否有行被修改"""
        set_parts = []
        params = []
        for key, value in fields.items():
            if key not in self._UPDATABLE_COLUMNS:
                continue
            if key == 'extra':
                value = _dump_extra(value)
            elif key == 'attachments':
                value = _dump_attachments(value)
            elif key == 'status':
                value = getattr(value, 'value', value)
            set_parts.append(f"{key} = %s")
            params.append(value)
        if not set_parts:
            return False
        set_parts.append("updated_at = NOW()")
        params.append(registration_id)
        cursor = conn.cursor()
        cursor.execute(
            "UPDATE competition_registrations SET "
            + ", ".join(set_parts)
            + " WHERE id = %s",
            tuple(params),
        )
        updated = cursor.rowcount > 0
        cursor.close()
        return updated

    def set_registration_status_with_conn(self, conn, registration_id, status):
        return self.update_registration_fields_with_conn(conn, registration_id, {'status': status})

    def replace_selections_with_conn(self, conn, registration_id, selections):
        """整体替换报名的所选项目：先删后插，不做局部修补"""
        cursor = conn.cursor()
        cursor.execute(
            "DELETE FROM competition_registration_events WHERE registration_id = %s",
            (registration_id,),
        )
        if selections:
            cursor.executemany(
                """
                INSERT INTO competition_registration_events (registration_id, event_id, group_id)
                VALUES (%s, %s, %s)
                """,
                [(registration_id, s.event_id, s.group_id) for s in selections],
            )
        cursor.close()

    def _attach_selections(self, cursor, registrations):
        if not registrations:
            return registrations
        ids = [r.registration_id for r in registrations]
        placeholders = ",".join(["%s"] * len(ids))
        # 一次性拉取所有所选项目，避免 N+1 查询
        cursor.execute(
            f"""
            SELECT cre.registration_id, cre.event_id, e.name AS event_name,
                   cre.group_id, g.name AS group_name
            FROM competition_registration_events cre
            JOIN competition_events e ON cre.event_id = e.id
            LEFT JOIN competition_groups g ON cre.group_id = g.id
            WHERE cre.registration_id IN ({placeholders})
            ORDER BY cre.registration_id, cre.id
            """,
            tuple(ids),
        )
        by_registration = {rid: [] for rid in ids}
        for row in cursor.fetchall():
            by_registration.setdefault(row['registration_id'], []).append(
                EventSelection(
                    registration_id=row['registration_id'],
                    event_id=row['event_id'],
                    group_id=row.get('group_id'),
                    event_name=row.get('event_name'),
                    group_name=row.get('group_name'),
                )
            )
        for registration in registrations:
            registration.selections = by_registration.get(registration.registration_id, [])
        return registrations

    def get_registration_with_conn(self, conn, registration_id):
        cursor = conn.cursor(dictionary=True)
        cursor.execute(
            self._REGISTRATION_SELECT + " WHERE r.id = %s LIMIT 1",
            (registration_id,),
        )
        row = cursor.fetchone()
        if not row:
            cursor.close()
            return None
        registration = Registration.from_row(row)
        self._attach_selections(cursor, [registration])
        cursor.close()
        return registration

    def list_registrations_with_conn(self, conn, user_id=None, organizer_id=None,
                                     competition_id=None, status=None, page=1, page_size=20):
        """分页查询报名记录，返回 (记录列表, 总数)。

        user_id 限定为本人的报名；organizer_id 限定为该组织者创建的赛事。
        """
        filters = []
        params = []
        if organizer_id is not None:
            filters.append("c.created_by = %s")
            params.append(organizer_id)
        if user_id is not None:
            filters.append("r.user_id = %s")
            params.append(user_id)
        if competition_id is not None:
            filters.append("r.competition_id = %s")
            params.append(competition_id)
        if status is not None:
            filters.append("r.status = %s")
            params.append(getattr(status, 'value', status))
        where_sql = (" WHERE " + " AND ".join(filters)) if filters else ""

        cursor = conn.cursor(dictionary=True)
        cursor.execute(
            "SELECT COUNT(*) AS total FROM competition_registrations r "
            "JOIN competitions c ON r.competition_id = c.id" + where_sql,
            tuple(params),
        )
        total = (cursor.fetchone() or {}).get('total', 0)

        cursor.execute(
            self._REGISTRATION_SELECT + where_sql
            + " ORDER BY r.created_at DESC, r.id DESC LIMIT %s OFFSET %s",
            tuple(params + [page_size, (page - 1) * page_size]),
        )
        registrations = [Registration.from_row(row) for row in cursor.fetchall()]
        self._attach_selections(cursor, registrations)
        cursor.close()
        return registrations, total
