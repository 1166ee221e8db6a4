from flask import Blueprint, current_app

from roster_manager import RosterManager


team_bp = Blueprint('team', __name__)


def get_roster_manager():
    return RosterManager(current_app.extensions['db_manager'])


# 导入具体路由模块，路由会附加到 team_bp 上
from . import members

__all__ = ['team_bp']
