import json
import logging

from mysql.connector import Error, errorcode

from exceptions import Conflict
from models import Team


logger = logging.getLogger(__name__)

DEFAULT_TEAM_NAME = '未命名队伍'


def _dump_members(members):
    return json.dumps([member.to_dict() for member in (members or [])], ensure_ascii=False)


class TeamDbMixin:
    """队伍与队员名单相关数据库操作 mixin。

    依赖宿主类提供:
    - self.get_connection(): 返回数据库连接的上下文管理器
    """

    _TEAM_COLUMNS = "id, name, contact_phone, members, user_id, created_at"

    def get_team_with_conn(self, conn, team_id):
        cursor = conn.cursor(dictionary=True)
        cursor.execute(
            f"SELECT {self._TEAM_COLUMNS} FROM teams WHERE id = %s",
            (team_id,),
        )
        row = cursor.fetchone()
        cursor.close()
        return Team.from_row(row) if row else None

    def get_team_by_owner_with_conn(self, conn, user_id, for_update=False):
        """按拥有者获取队伍；for_update 时对队伍行加锁，串行化同一队伍的名单同步"""
        cursor = conn.cursor(dictionary=True)
        sql = f"SELECT {self._TEAM_COLUMNS} FROM teams WHERE user_id = %s LIMIT 1"
        if for_update:
            sql += " FOR UPDATE"
        cursor.execute(sql, (user_id,))
        row = cursor.fetchone()
        cursor.close()
        return Team.from_row(row) if row else None

    def ensure_team_with_conn(self, conn, user_id):
        """确保用户拥有一支队伍，不存在时以用户昵称/手机号为默认队名创建"""
        team = self.get_team_by_owner_with_conn(conn, user_id, for_update=True)
        if team:
            return team

        cursor = conn.cursor(dictionary=True)
        cursor.execute(
            "SELECT phone, display_name FROM users WHERE id = %s LIMIT 1",
            (user_id,),
        )
        user_row = cursor.fetchone() or {}
        default_name = user_row.get('display_name') or user_row.get('phone') or DEFAULT_TEAM_NAME

        try:
            cursor.execute(
                """
                INSERT INTO teams (name, contact_phone, members, user_id)
                VALUES (%s, %s, %s, %s)
                """,
                (default_name, user_row.get('phone'), '[]', user_id),
            )
        except Error as e:
            cursor.close()
            if e.errno != errorcode.ER_DUP_ENTRY:
                raise
            # 并发的首次请求已建好队伍，改为读取并锁定该行
            team = self.get_team_by_owner_with_conn(conn, user_id, for_update=True)
            if team is None:
                raise Conflict('队伍创建冲突，请重试') from e
            return team
        team_id = cursor.lastrowid
        cursor.close()
        logger.info(f"为用户 {user_id} 创建默认队伍 {team_id}")
        return Team(team_id=team_id, name=default_name, user_id=user_id,
                    contact_phone=user_row.get('phone'), members=[])

    def upsert_team_with_conn(self, conn, user_id, name, contact_phone=None, members=None):
        """按拥有者创建或更新队伍（teams.user_id 唯一），返回队伍 ID。

        ON DUPLICATE KEY 分支中 LAST_INSERT_ID(id) 保证 lastrowid 指向已存在的队伍。
        """
        cursor = conn.cursor()
        cursor.execute(
            """
            INSERT INTO teams (name, contact_phone, members, user_id)
            VALUES (%s, %s, %s, %s)
            ON DUPLICATE KEY UPDATE
                id = LAST_INSERT_ID(id),
                name = VALUES(name),
                contact_phone = VALUES(contact_phone),
                members = VALUES(members)
            """,
            (name, contact_phone, _dump_members(members), user_id),
        )
        team_id = cursor.lastrowid
        cursor.close()
        return team_id

    def save_team_members_with_conn(self, conn, team_id, members):
        """原样保存队员名单（members 为 Member 列表）"""
        payload = _dump_members(members)
        cursor = conn.cursor()
        cursor.execute(
            "UPDATE teams SET members = %s WHERE id = %s",
            (payload, team_id),
        )
        cursor.close()
