#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
赛事报名系统 - 数据库连接和事务管理
"""

import mysql.connector
from mysql.connector import Error, pooling
from contextlib import contextmanager
import logging
import time

from config import Config
from models import DATABASE_SCHEMA
from db_modules.db_catalog import CatalogDbMixin
from db_modules.db_teams import TeamDbMixin
from db_modules.db_registrations import RegistrationDbMixin

logger = logging.getLogger(__name__)


class TimedCursorWrapper:
    """记录慢查询的游标包装：耗时超过阈值的 SQL 以 WARNING 级别输出"""

    def __init__(self, cursor, slow_threshold_ms=50):
        self._cursor = cursor
        self._slow_threshold_ms = slow_threshold_ms

    def _timed(self, label, operation, detail, call):
        started = time.perf_counter()
        try:
            return call()
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            if elapsed_ms >= self._slow_threshold_ms:
                logger.warning("慢查询%s 耗时 %.1f ms: %s; %s", label, elapsed_ms, operation, detail)

    def execute(self, operation, params=None, multi=False):
        return self._timed(
            "", operation, f"params={params}",
            lambda: self._cursor.execute(operation, params, multi),
        )

    def executemany(self, operation, seq_params):
        count = len(seq_params) if seq_params is not None else 0
        return self._timed(
            "(executemany)", operation, f"rows={count}",
            lambda: self._cursor.executemany(operation, seq_params),
        )

    def __getattr__(self, item):
        return getattr(self._cursor, item)


_connection_pools = {}


def _get_connection_pool(config, pool_name, pool_size):
    """按池名获取（必要时创建）全局数据库连接池，失败返回 None"""
    pool = _connection_pools.get(pool_name)
    if pool is None:
        try:
            pool = pooling.MySQLConnectionPool(
                pool_name=pool_name,
                pool_size=pool_size,
                **config
            )
            _connection_pools[pool_name] = pool
            logger.info(f"数据库连接池创建成功，池大小: {pool_size}")
        except Error as e:
            logger.error(f"创建数据库连接池失败，将回退到直连模式: {e}")
            return None
    return pool


class DatabaseManager(
    CatalogDbMixin,
    TeamDbMixin,
    RegistrationDbMixin,
):
    """数据库管理器

    各领域的 *_with_conn 方法只在传入的连接上执行 SQL，不提交事务；
    由 transaction() 统一提交或回滚。
    """

    def __init__(self, config=None):
        settings = config or Config
        self.config = {
            'host': settings.DB_HOST,
            'port': settings.DB_PORT,
            'user': settings.DB_USER,
            'password': settings.DB_PASSWORD,
            'database': settings.DB_NAME,
            'charset': 'utf8mb4',
            'collation': 'utf8mb4_unicode_ci',
            'autocommit': False,
            'raise_on_warnings': False,
            'pool_reset_session': True,
            'connection_timeout': settings.DB_CONNECTION_TIMEOUT,
        }
        self.pool_name = settings.DB_POOL_NAME
        self.pool_size = settings.DB_POOL_SIZE
        self.slow_threshold_ms = settings.SLOW_QUERY_THRESHOLD_MS
        # 连接池在第一次取连接时才创建，避免导入阶段就连接数据库
        self.pool = None

    def _connect(self):
        if self.pool is None:
            self.pool = _get_connection_pool(self.config, self.pool_name, self.pool_size)
        if self.pool:
            return self.pool.get_connection()
        direct_config = {k: v for k, v in self.config.items() if k != 'pool_reset_session'}
        return mysql.connector.connect(**direct_config)

    @contextmanager
    def get_connection(self):
        """获取数据库连接的上下文管理器"""
        connection = None
        try:
            connection = self._connect()

            original_cursor = connection.cursor

            def timed_cursor(*args, **kwargs):
                base_cursor = original_cursor(*args, **kwargs)
                return TimedCursorWrapper(base_cursor, slow_threshold_ms=self.slow_threshold_ms)

            connection.cursor = timed_cursor

            yield connection
        except Error as e:
            logger.error(f"数据库连接错误: {e}")
            if connection:
                connection.rollback()
            raise
        finally:
            if connection and connection.is_connected():
                connection.close()

    @contextmanager
    def transaction(self):
        """在单个事务中执行一组操作：全部提交或全部回滚"""
        with self.get_connection() as connection:
            try:
                yield connection
                connection.commit()
            except Exception:
                connection.rollback()
                raise

    def init_database(self):
        """初始化数据库和表（已存在的表保持不变）"""
        try:
            temp_config = {k: v for k, v in self.config.items()
                           if k not in ('database', 'pool_reset_session')}

            with mysql.connector.connect(**temp_config) as connection:
                cursor = connection.cursor()
                cursor.execute(
                    f"CREATE DATABASE IF NOT EXISTS {self.config['database']} "
                    "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
                )

            with self.get_connection() as connection:
                cursor = connection.cursor()
                for table_name, schema in DATABASE_SCHEMA.items():
                    try:
                        cursor.execute(schema)
                    except Error as e:
                        logger.error(f"创建表 {table_name} 失败: {e}")
                        raise
                connection.commit()
                logger.info("数据库表结构检查完成")

        except Error as e:
            logger.error(f"数据库初始化失败: {e}")
            raise


if __name__ == '__main__':
    db_manager = DatabaseManager()
    try:
        db_manager.init_database()
        print("数据库初始化成功！")
    except Exception as e:
        print(f"数据库初始化失败: {e}")
