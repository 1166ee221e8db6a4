#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 队伍名单管理
"""

import logging
from datetime import datetime

from exceptions import NotFound, SignupWindowError
from reconciler import normalize_name, plan_roster_sync
from registration_guard import check_signup_window, require_competition
from registration_writer import RegistrationWriter

logger = logging.getLogger(__name__)


class RosterManager:
    """队伍名单管理器：读取/保存名单，并按需同步到某个赛事的报名记录"""

    def __init__(self, db_manager):
        self.db_manager = db_manager
        self.writer = RegistrationWriter(db_manager)

    def get_roster(self, actor, competition_id=None):
        """返回 (队伍, 队员列表)。

        指定赛事时，队员的 registered 标记按该赛事下有效的报名记录重新计算。
        """
        with self.db_manager.transaction() as conn:
            team = self.db_manager.ensure_team_with_conn(conn, actor.user_id)
            members = team.members
            if competition_id is not None:
                registrations = self.db_manager.get_team_registrations_with_conn(
                    conn, competition_id, team.team_id
                )
                active_names = {
                    normalize_name(r.participant_name) for r in registrations if r.is_active
                }
                for member in members:
                    member.registered = normalize_name(member.name) in active_names
            return team, members

    def save_roster(self, actor, members, competition_id=None, now=None):
        """保存名单；指定赛事时在同一事务内完成报名同步。

        返回 (队伍, 队员列表, 同步摘要, 同步被拒原因)。名单总是按提交内容原样保存：
        赛事不存在或不在报名时间内时只跳过同步，拒绝原因以业务异常的形式返回，
        名单照常提交。同步写入过程中出现的其他错误使名单与报名一起回滚。
        """
        now = now or datetime.now()
        summary = None
        rejection = None
        with self.db_manager.transaction() as conn:
            # ensure_team_with_conn 对队伍行加锁，同一队伍的并发同步在此串行
            team = self.db_manager.ensure_team_with_conn(conn, actor.user_id)
            self.db_manager.save_team_members_with_conn(conn, team.team_id, members)

            if competition_id is not None:
                try:
                    competition = require_competition(
                        self.db_manager.get_competition_with_conn(conn, competition_id)
                    )
                    check_signup_window(competition, now)
                except (NotFound, SignupWindowError) as e:
                    rejection = e
                    logger.info(f"队伍 {team.team_id} 名单已保存，跳过赛事 {competition_id} 的同步: {e.message}")
                else:
                    summary = self._sync(conn, competition, team, members, now)

        team.members = members
        logger.info(
            f"队伍 {team.team_id} 保存名单 {len(members)} 人"
            + (f"，同步赛事 {competition_id}: {summary}" if summary else "")
        )
        return team, members, summary, rejection

    def _sync(self, conn, competition, team, members, now):
        events = self.db_manager.get_competition_events_with_conn(conn, competition.competition_id)
        existing = self.db_manager.get_team_registrations_with_conn(
            conn, competition.competition_id, team.team_id
        )
        plan = plan_roster_sync(events, existing, members)
        self.writer.apply_roster_sync(
            competition.competition_id, team.team_id, team.user_id, plan, conn=conn, now=now
        )
        return plan.summary()
