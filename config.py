#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 配置文件
"""

import os
import logging
from datetime import timedelta
from dotenv import load_dotenv

# 加载环境变量
load_dotenv()


class Config:
    """应用配置类"""

    # Flask 基础配置
    SECRET_KEY = os.environ.get('SECRET_KEY')
    TESTING = False

    # 数据库配置
    DB_HOST = os.environ.get('DB_HOST') or 'localhost'
    DB_PORT = int(os.environ.get('DB_PORT') or 3306)
    DB_USER = os.environ.get('DB_USER') or 'signup'
    DB_PASSWORD = os.environ.get('DB_PASSWORD') or ''
    DB_NAME = os.environ.get('DB_NAME') or 'competition_signup'
    # 数据库连接池配置
    DB_POOL_NAME = os.environ.get('DB_POOL_NAME') or 'signup_pool'
    DB_POOL_SIZE = int(os.environ.get('DB_POOL_SIZE') or 5)
    DB_CONNECTION_TIMEOUT = int(os.environ.get('DB_CONNECTION_TIMEOUT') or 30)
    # 超过该耗时（毫秒）的 SQL 记录为慢查询
    SLOW_QUERY_THRESHOLD_MS = int(os.environ.get('SLOW_QUERY_THRESHOLD_MS') or 50)
    # 启动时是否自动建表
    DB_AUTO_MIGRATE = os.environ.get('DB_AUTO_MIGRATE', 'true').lower() in ['true', 'on', '1']

    # 服务器配置
    HOST = os.environ.get('HOST') or '0.0.0.0'
    PORT = int(os.environ.get('PORT') or 5000)
    DEBUG = os.environ.get('DEBUG', 'False').lower() == 'true'

    # Session 配置
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    SESSION_COOKIE_SECURE = False  # 生产环境应设为 True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # 日志配置
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = os.environ.get('LOG_FILE') or 'competition_signup.log'

    # 名单与报名配置
    ROSTER_MAX_EVENTS_PER_MEMBER = 5
    ROSTER_FIELD_MAX_LENGTH = {
        'event': 100,
        'result': 100,
        'gender': 50,
        'group': 100,
    }
    TEAM_MEMBERS_MAX = 20
    REGISTRATION_PAGE_SIZE = 20
    REGISTRATION_PAGE_SIZE_MAX = 100

    # 系统配置
    SYSTEM_NAME = '赛事报名系统'
    SYSTEM_VERSION = '1.0.0'

    @staticmethod
    def init_app(app):
        """初始化应用配置"""
        handlers = [logging.StreamHandler()]
        if app.config.get('LOG_FILE'):
            handlers.append(logging.FileHandler(app.config['LOG_FILE'], encoding='utf-8'))
        logging.basicConfig(
            level=getattr(logging, app.config.get('LOG_LEVEL', 'INFO')),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=handlers,
        )


class DevelopmentConfig(Config):
    """开发环境配置"""
    DEBUG = True
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'competition-signup-dev-secret-key'
    DB_NAME = os.environ.get('DB_NAME') or 'competition_signup_dev'


class ProductionConfig(Config):
    """生产环境配置"""
    DEBUG = False
    SESSION_COOKIE_SECURE = True
    SECRET_KEY = os.environ.get('SECRET_KEY')

    # 生产环境数据库配置（从环境变量获取）
    DB_HOST = os.environ.get('PROD_DB_HOST') or 'localhost'
    DB_USER = os.environ.get('PROD_DB_USER') or 'signup_user'
    DB_PASSWORD = os.environ.get('PROD_DB_PASSWORD') or ''
    DB_NAME = os.environ.get('PROD_DB_NAME') or 'competition_signup_prod'


class TestingConfig(Config):
    """测试环境配置"""
    TESTING = True
    SECRET_KEY = 'competition-signup-test-secret-key'
    DB_NAME = 'competition_signup_test'
    DB_AUTO_MIGRATE = False
    LOG_FILE = None


# 配置映射
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
