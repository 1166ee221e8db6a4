#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 应用入口
"""

import os
import sys
import time

from dotenv import load_dotenv
from flask import Flask, request, jsonify, g
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

load_dotenv()

from config import config as config_map
from database import DatabaseManager
from exceptions import RegistrationError
from api import registrations_bp, team_bp


def create_app(env_name=None, db_manager=None):
    """创建应用

    Args:
        env_name: 配置名称，默认取环境变量 APP_ENV
        db_manager: 数据访问对象，默认按配置创建 DatabaseManager
    """
    app = Flask(__name__)
    env_name = (env_name or os.environ.get('APP_ENV', 'default')).lower()
    config_class = config_map.get(env_name, config_map['default'])
    app.config.from_object(config_class)
    config_class.init_app(app)

    if env_name == 'production' and not app.config.get('SECRET_KEY'):
        raise RuntimeError('SECRET_KEY environment variable is required in production')

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    if db_manager is None:
        db_manager = DatabaseManager(config_class)
        if app.config.get('DB_AUTO_MIGRATE'):
            # 启动时只做增量建表；失败时记录错误但不阻止应用启动
            try:
                db_manager.init_database()
                app.logger.info("数据库初始化成功")
            except Exception as e:
                app.logger.error(f"数据库初始化检查失败: {e}")
    app.extensions['db_manager'] = db_manager

    @app.before_request
    def start_request_timer():
        g.request_start_time = time.perf_counter()

    @app.after_request
    def log_request_time(response):
        start_time = getattr(g, 'request_start_time', None)
        if start_time is not None:
            duration_ms = (time.perf_counter() - start_time) * 1000
            app.logger.info(
                "Request %s %s took %.2fms, status %d",
                request.method,
                request.path,
                duration_ms,
                response.status_code,
            )
        return response

    @app.errorhandler(RegistrationError)
    def handle_registration_error(error):
        app.logger.info(f"{request.method} {request.path} 业务校验未通过: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'success': False, 'message': error.description, 'code': error.code}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.exception(f"{request.method} {request.path} 处理失败: {error}")
        return jsonify({'success': False, 'message': '服务器内部错误，请稍后重试', 'code': 500}), 500

    app.register_blueprint(registrations_bp, url_prefix='/api')
    app.register_blueprint(team_bp, url_prefix='/api')

    @app.route('/api/health')
    def health():
        return jsonify({'success': True, 'status': 'ok', 'version': app.config.get('SYSTEM_VERSION')})

    return app


if __name__ == '__main__':
    app = create_app()
    try:
        app.run(
            host=app.config.get('HOST', '0.0.0.0'),
            port=app.config.get('PORT', 5000),
            debug=app.config.get('DEBUG', True)
        )
    except KeyboardInterrupt:
        sys.exit(0)
