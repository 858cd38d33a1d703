"""
pytest 配置
"""
import pytest
import os

# 测试时不连接外部数据库
os.environ.setdefault("DB_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOG_FORMAT", "console")


@pytest.fixture(scope="session")
def test_settings():
    """测试配置"""
    from core.config import Settings
    return Settings()


@pytest.fixture
def repository():
    """内存持久化"""
    from alarms import InMemoryAlarmDefinitionRepository
    return InMemoryAlarmDefinitionRepository()


@pytest.fixture
def state_updater():
    """记录状态转换的协作者"""
    from alarms import RecordingAlarmStateUpdater
    return RecordingAlarmStateUpdater()


@pytest.fixture
def service(repository, state_updater):
    """默认策略的告警定义服务"""
    from alarms import AlarmDefinitionService
    return AlarmDefinitionService(repository, alarm_state_updater=state_updater)


@pytest.fixture
def sql_session_factory():
    """
    数据库会话工厂 fixture

    每个测试函数使用独立的内存 SQLite 数据库
    """
    from db import Base, create_db_engine, create_session_factory

    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield create_session_factory(engine)
    engine.dispose()
