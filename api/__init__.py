#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - API接口模块
"""

from .registrations import registrations_bp
from .team import team_bp

__version__ = '1.0.0'

# 导出所有蓝图
__all__ = ['registrations_bp', 'team_bp']
