#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 装饰器（登录、角色校验与操作日志）
"""

from functools import wraps
from flask import session, jsonify, g
import logging
import time

from models import Actor, UserRole

logger = logging.getLogger(__name__)


def current_actor():
    """由会话构造当前操作者，未登录或角色无效时返回 None"""
    user_id = session.get('user_id')
    role = session.get('user_role')
    if not session.get('logged_in') or user_id is None or not role:
        return None
    try:
        return Actor(user_id, role)
    except ValueError:
        logger.warning(f"会话中的角色无效: {role}")
        return None


def login_required(f):
    """登录验证装饰器，通过后当前操作者保存在 g.actor"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = current_actor()
        if actor is None:
            return jsonify({'success': False, 'message': '请先登录', 'code': 401}), 401
        g.actor = actor
        return f(*args, **kwargs)
    return decorated_function


def role_required(required_roles):
    """角色权限验证装饰器

    Args:
        required_roles: 字符串或列表，指定需要的角色
    """
    if isinstance(required_roles, str):
        roles = {UserRole(required_roles)}
    else:
        roles = {UserRole(role) for role in required_roles}

    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            if g.actor.role not in roles:
                return jsonify({'success': False, 'message': '权限不足', 'code': 403}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def log_action(action_name):
    """操作日志装饰器

    Args:
        action_name: 操作名称
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_id = session.get('user_id')

            start_time = time.perf_counter()
            logger.info(f"用户(ID:{user_id}) 开始执行操作: {action_name}")

            try:
                result = f(*args, **kwargs)
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    f"用户(ID:{user_id}) 执行操作失败: {action_name}, 耗时: {duration_ms:.1f} ms, 错误: {str(e)}"
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                f"用户(ID:{user_id}) 完成操作: {action_name}, 耗时: {duration_ms:.1f} ms"
            )
            return result
        return decorated_function
    return decorator
