import os

from bigasan_pos.config import AppConfig, load_config


def test_defaults():
    config = load_config({})
    assert config.data_dir == os.path.abspath('data')
    assert config.sync_enabled is False
    assert config.firebase_collection == 'pos'
    assert config.max_backups == 7
    assert config.log_level == 'INFO'


def test_credentials_enable_sync():
    config = load_config({'FIREBASE_CREDENTIALS': '/tmp/sa.json', 'POS_LOG_LEVEL': 'debug'})
    assert config.sync_enabled is True
    assert config.firebase_options() == {'credentials': '/tmp/sa.json', 'project_id': None}
    assert config.log_level == 'DEBUG'


def test_explicit_flags_and_bad_numbers():
    config = load_config({
        'FIREBASE_PROJECT_ID': 'bigasan',
        'POS_SYNC_ENABLED': 'no',
        'POS_PRODUCTION': 'TRUE',
        'POS_MAX_BACKUPS': 'muchos',
    })
    assert config.sync_enabled is False
    assert config.production is True
    assert config.max_backups == 7
    assert isinstance(config, AppConfig)


def test_production_without_secret_warns(caplog):
    load_config({'POS_PRODUCTION': '1'})
    assert 'POS_SECRET_KEY' in caplog.text
